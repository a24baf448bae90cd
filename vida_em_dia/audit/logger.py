"""
Audit Logger

DESIGN DECISION: Every significant action in the assistant is logged.
This provides:
1. Complete traceability of the confirmation protocol
2. Debugging capability when a collaborator fails
3. Usage analytics without a separate pipeline

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Offers fire-and-forget emission for callers that must not wait
- Supports correlation IDs to trace related events
"""

import asyncio
from typing import Optional
from uuid import UUID, uuid4

import structlog

from vida_em_dia.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from vida_em_dia.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage backend (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            correlation_id: Stamped on events that don't carry one.
        """
        self._storage = storage
        self._correlation_id = correlation_id
        self._logger = structlog.get_logger()
        self._pending: set[asyncio.Task] = set()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if event.correlation_id is None and self._correlation_id is not None:
            event.correlation_id = self._correlation_id

        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def emit(self, event: AuditEvent) -> None:
        """
        Schedule an event without waiting for it.

        Outside a running loop the event is only logged locally.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.info("audit_event", **event.to_log_dict())
            return

        task = loop.create_task(self.log(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every event scheduled with emit()."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a conversation session.
    Pass it through all subsequent operations.
    """
    return uuid4()
