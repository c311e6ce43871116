"""CSV reading and template generation for bulk product uploads.

Header names are trimmed and lower-cased, values trimmed, and every row is
numbered from 1 in file order (the header line is not counted).  Blank
lines are skipped without consuming a row number.
"""

from __future__ import annotations

import csv
import io
from typing import IO, Dict, Iterator, List, Union

from modules.core.exceptions import ValidationError

TEMPLATE_HEADERS = [
    "product_name",
    "product_description",
    "price",
    "discount",
    "manufacturer",
    "brand",
    "brand_logo",
    "variant",
    "category",
    "category_description",
    "subcategory",
    "subcategory_description",
    "pack_size",
    "pack_type",
    "product_images",
    "product_thumbnail",
]

TEMPLATE_SAMPLE_ROWS = [
    [
        "Coca Cola Original",
        "Classic cola with original taste",
        "2.50",
        "10",
        "The Coca-Cola Company",
        "Coca Cola",
        "https://example.com/coca-cola-logo.png",
        "Original",
        "Beverages",
        "Non-alcoholic drinks",
        "Soft Drinks",
        "Carbonated beverages",
        "500ml",
        "Bottle",
        "https://example.com/product1.jpg,https://example.com/product2.jpg",
        "https://example.com/thumbnail.jpg",
    ],
    [
        "Pepsi Max",
        "Zero calorie cola drink",
        "2.30",
        "5",
        "PepsiCo",
        "Pepsi",
        "",
        "Max",
        "Beverages",
        "Non-alcoholic drinks",
        "Soft Drinks",
        "Zero calorie carbonated beverages",
        "330ml",
        "Can",
        "",
        "",
    ],
]

CsvSource = Union[str, bytes, IO[str], IO[bytes]]


def _as_text(source: CsvSource) -> IO[str]:
    if isinstance(source, bytes):
        try:
            return io.StringIO(source.decode("utf-8-sig"))
        except UnicodeDecodeError as exc:
            raise ValidationError("CSV file must be UTF-8 encoded.") from exc
    if isinstance(source, str):
        return io.StringIO(source.lstrip("\ufeff"))
    if isinstance(source, io.TextIOBase):
        return source
    return io.TextIOWrapper(source, encoding="utf-8-sig", newline="")


def read_rows(source: CsvSource) -> List[Dict[str, object]]:
    """Parse a CSV upload into ingestion row mappings.

    Raises:
        ValidationError: the file has no header or no data rows.
    """
    rows = list(iter_rows(source))
    if not rows:
        raise ValidationError("CSV file contains no data rows.")
    return rows


def iter_rows(source: CsvSource) -> Iterator[Dict[str, object]]:
    reader = csv.reader(_as_text(source))
    try:
        header = next(reader)
    except StopIteration:
        raise ValidationError("CSV file is empty.") from None
    except (csv.Error, UnicodeDecodeError) as exc:
        raise ValidationError(f"CSV file could not be read: {exc}") from exc
    keys = [key.strip().lower() for key in header]
    if not any(keys):
        raise ValidationError("CSV header row is empty.")

    row_number = 0
    try:
        for values in reader:
            if not any(value.strip() for value in values):
                continue
            row_number += 1
            row: Dict[str, object] = {
                key: value.strip() for key, value in zip(keys, values) if key
            }
            row["row_number"] = row_number
            yield row
    except (csv.Error, UnicodeDecodeError) as exc:
        raise ValidationError(
            f"CSV file could not be read after row {row_number}: {exc}"
        ) from exc


def template_csv() -> str:
    """CSV template with the accepted headers and two sample rows."""
    buffer = io.StringIO()
    buffer.write(",".join(TEMPLATE_HEADERS) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(TEMPLATE_SAMPLE_ROWS)
    return buffer.getvalue()
