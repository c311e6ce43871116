import pytest

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    def test_password_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_secret_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "dsn": "secret: hunter2"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "hunter2" not in result["dsn"]

    def test_api_key_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "storage.upload_failed", "error": "invalid api_key=AKIA123, retry"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "AKIA123" not in result["error"]
        assert result["error"].endswith(", retry")

    def test_token_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    def test_non_string_values_untouched(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "ingestion.completed", "total_rows": 10}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["total_rows"] == 10

    def test_non_sensitive_data_unchanged(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "product.saved", "sku": "INDOMIE-CHICKEN-70G-SINGLE-PACK"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["sku"] == "INDOMIE-CHICKEN-70G-SINGLE-PACK"
        assert result["event"] == "product.saved"
