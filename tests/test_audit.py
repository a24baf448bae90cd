"""Tests for the audit logger."""

import pytest
from uuid import uuid4

from vida_em_dia.audit import AuditLogger, create_correlation_id
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.services.storage.interface import StorageError
from vida_em_dia.services.storage.memory import InMemoryAuditStorage


class FailingAuditStorage(InMemoryAuditStorage):

    async def append_event(self, event):
        raise StorageError("sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_log_persists(self, audit, audit_storage):
        """Test an event reaches the storage backend."""
        event = AuditEventBuilder.action_cancelled("act-1", "COMPLETE_TASK")
        assert await audit.log(event) is True
        assert audit_storage.events == [event]

    @pytest.mark.asyncio
    async def test_log_without_storage(self):
        """Test a logger with no backend only logs locally."""
        assert await AuditLogger().log(AuditEventBuilder.analytics("opened")) is True

    @pytest.mark.asyncio
    async def test_storage_failure_swallowed(self):
        """Test a failing backend reports False instead of raising."""
        audit = AuditLogger(FailingAuditStorage())
        assert await audit.log(AuditEventBuilder.analytics("opened")) is False

    @pytest.mark.asyncio
    async def test_correlation_id_stamped(self, audit_storage):
        """Test the logger's correlation id fills events that lack one."""
        correlation_id = create_correlation_id()
        audit = AuditLogger(audit_storage, correlation_id=correlation_id)

        await audit.log(AuditEventBuilder.analytics("opened"))
        own = uuid4()
        await audit.log(AuditEventBuilder.upload_failed("a.pdf", "boom", correlation_id=own))

        assert [e.correlation_id for e in audit_storage.events] == [correlation_id, own]
        related = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.details["name"] for e in related] == ["opened"]

    @pytest.mark.asyncio
    async def test_emit_then_drain(self, audit, audit_storage):
        """Test emitted events are written once drained."""
        audit.emit(AuditEventBuilder.analytics("one"))
        audit.emit(AuditEventBuilder.analytics("two"))
        await audit.drain()

        assert [e.details["name"] for e in audit_storage.events] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_emit_failure_never_surfaces(self):
        """Test a failing backend does not break fire-and-forget callers."""
        audit = AuditLogger(FailingAuditStorage())
        audit.emit(AuditEventBuilder.analytics("one"))
        await audit.drain()

    def test_emit_outside_loop(self, audit, audit_storage):
        """Test emitting with no running loop only logs locally."""
        audit.emit(AuditEventBuilder.analytics("offline"))
        assert audit_storage.events == []
