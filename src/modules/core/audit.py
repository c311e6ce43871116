"""Audit sink used by the catalog services.

Recording is fire-and-forget: the entry is queued with
``transaction.on_commit`` and written after the business transaction
commits.  A failing write is logged and dropped; it never reaches the caller.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from django.db import DatabaseError, transaction

from modules.core.models import AuditLog

if TYPE_CHECKING:
    from modules.core.context import ServiceContext


class IAuditSink(Protocol):
    """Accepts ``(action, resource_type, resource_id, actor_id, metadata)``."""

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str],
        actor_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None: ...


class DatabaseAuditSink:
    """Writes ``AuditLog`` rows once the surrounding transaction commits."""

    def __init__(self, context: ServiceContext) -> None:
        self._log = context.logger_for("audit")

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str],
        actor_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        transaction.on_commit(
            partial(
                self._write,
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id or ""),
                actor_id=str(actor_id or ""),
                metadata=metadata or {},
            )
        )

    def _write(self, **entry: Any) -> None:
        try:
            AuditLog.objects.create(**entry)
        except DatabaseError as exc:
            self._log.warning(
                "audit.write_failed",
                action=entry["action"],
                resource_type=entry["resource_type"],
                resource_id=entry["resource_id"],
                error=str(exc),
            )
            return
        self._log.info(
            "audit.recorded",
            action=entry["action"],
            resource_type=entry["resource_type"],
            resource_id=entry["resource_id"],
        )
