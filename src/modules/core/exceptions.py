"""Catalog domain exceptions.

Raised by the Service Layer when business rules are violated.  The bulk
ingestion pipeline catches these per row and reports them; every other
caller receives them directly.  ``translate_persistence_errors`` maps
Django store failures onto this taxonomy.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from django.db import DatabaseError, IntegrityError


class CatalogError(Exception):
    """Base class for every error raised by the catalog engine."""

    code = "catalog_error"

    def __init__(self, message: str = "", **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CatalogError):
    """A row or request field is malformed or missing."""

    code = "validation_error"


class NotFoundError(CatalogError):
    """A referenced entity does not exist or has been soft-deleted."""

    code = "not_found"


class InactiveParentError(CatalogError):
    """The parent exists but is administratively inactive.

    Blocks creation of new children; already existing children stay
    addressable.
    """

    code = "inactive_parent"


class ConflictError(CatalogError):
    """Duplicate name in scope, or SKU/name collision on a product.

    Always recoverable by the caller: re-resolve, or choose another name.
    """

    code = "conflict"


class TransactionError(CatalogError):
    """The persistence transaction failed (deadlock, connectivity).

    The failed operation was atomic, so retrying it as a whole is safe.
    """

    code = "transaction_error"


class StorageError(CatalogError):
    """An optional asset upload failed.

    Surfaced as a warning; the entity is persisted without the asset.
    """

    code = "storage_error"


@contextmanager
def translate_persistence_errors(operation: str) -> Iterator[None]:
    """Re-raise store failures inside the block as catalog errors.

    ``IntegrityError`` (a unique or check constraint) becomes
    ``ConflictError``; any other ``DatabaseError`` becomes
    ``TransactionError``.  Catalog errors pass through untouched.
    """
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError(f"{operation} conflicts with existing data: {exc}") from exc
    except DatabaseError as exc:
        raise TransactionError(f"{operation} failed: {exc}") from exc
