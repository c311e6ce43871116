import logging

import pytest
import structlog


class TestIngestionLogContext:
    ROW = {
        "manufacturer": "Nestle",
        "brand": "Maggi",
        "variant": "Chicken",
        "pack_size": "10g",
        "pack_type": "Cube",
        "category": "Food",
    }

    def test_batch_id_in_logs(self, services, caplog):
        with caplog.at_level(logging.INFO):
            summary = services.pipeline.ingest([self.ROW], actor_id="user-1")
        messages = [record.getMessage() for record in caplog.records]
        tagged = [m for m in messages if summary.batch_id in m]
        assert any("resolver.entity_created" in m for m in tagged), messages
        assert any("ingestion.completed" in m for m in tagged), messages

    def test_batch_context_cleared_afterwards(self, services):
        services.pipeline.ingest([self.ROW])
        assert "batch_id" not in structlog.contextvars.get_contextvars()

    def test_row_failure_logged(self, services, caplog):
        with caplog.at_level(logging.WARNING):
            services.pipeline.ingest([{**self.ROW, "brand": ""}])
        assert any("ingestion.row_failed" in r.getMessage() for r in caplog.records)


class TestSensitiveDataMasking:
    def test_password_masked_in_log_output(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked_in_log_output(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    def test_non_sensitive_data_unchanged(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "ingestion.completed", "batch_id": "b-001"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["batch_id"] == "b-001"
        assert result["event"] == "ingestion.completed"


@pytest.mark.parametrize("level", ["info", "warning"])
def test_component_logger_emits_json_ready_events(level, caplog, catalog_context):
    log = catalog_context.logger_for("test_component")
    with caplog.at_level(logging.INFO):
        getattr(log, level)("component.event", key="value")
    assert any("component.event" in r.getMessage() for r in caplog.records)
