"""
Audit Models for Vida em Dia

Every significant action in the assistant is logged for audit purposes.
This provides:
1. Traceability of every proposed, confirmed or cancelled action
2. Debugging information when a collaborator fails
3. The record of which cached knowledge was served to whom

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Writing one must never change what the user sees.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from vida_em_dia.models.finance import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the confirmation protocol has its own event type.
    """
    # Action protocol
    ACTION_PROPOSED = "action_proposed"
    ACTION_CONFIRMED = "action_confirmed"
    ACTION_CANCELLED = "action_cancelled"
    ACTION_EXPIRED = "action_expired"
    ACTION_FAILED = "action_failed"

    # Knowledge cache
    KNOWLEDGE_USED = "used"
    KNOWLEDGE_CREATED = "created"
    KNOWLEDGE_REJECTED = "rejected"
    KNOWLEDGE_PURGED = "purged"

    # Collaborators
    REMOTE_CALL_FAILED = "remote_call_failed"
    UPLOAD_FAILED = "upload_failed"

    # Product analytics
    ANALYTICS = "analytics"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'pending_action', 'knowledge_fact')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who triggered it
    user_id: Optional[str] = None
    household_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one conversation session)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "household_id": self.household_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, household_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.user_id or "",
            self.household_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.action_confirmed(action_id, "COMPLETE_TASK", task_id)
        event = AuditEventBuilder.knowledge_used(fact_id, "general", user_id)
    """

    @staticmethod
    def action_proposed(
        action_id: str,
        action_type: str,
        target: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_PROPOSED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"Action proposed: {action_type}",
            details={"action_type": action_type, "target": target},
        )

    @staticmethod
    def action_confirmed(
        action_id: str,
        action_type: str,
        target: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_CONFIRMED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"User confirmed {action_type}",
            details={"action_type": action_type, "target": target},
            is_user_action=True,
        )

    @staticmethod
    def action_cancelled(
        action_id: str,
        action_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_CANCELLED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"User cancelled {action_type}",
            details={"action_type": action_type},
            is_user_action=True,
        )

    @staticmethod
    def action_expired(
        action_id: str,
        action_type: str,
        expires_at: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_EXPIRED,
            severity=AuditSeverity.WARNING,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"Confirmation arrived after expiry: {action_type}",
            details={"action_type": action_type, "expires_at": expires_at.isoformat()},
        )

    @staticmethod
    def action_failed(
        action_id: str,
        action_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"Handler failed for {action_type}",
            error_message=error_message,
            details={"action_type": action_type},
        )

    @staticmethod
    def knowledge_used(
        fact_id: str,
        domain: str,
        user_id: Optional[str] = None,
        household_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.KNOWLEDGE_USED,
            entity_type="knowledge_fact",
            entity_id=fact_id,
            user_id=user_id,
            household_id=household_id,
            description=f"Cached knowledge served ({domain})",
            details={"domain": domain},
        )

    @staticmethod
    def knowledge_created(
        fact_id: str,
        domain: str,
        valid_until: datetime,
        user_id: Optional[str] = None,
        household_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.KNOWLEDGE_CREATED,
            entity_type="knowledge_fact",
            entity_id=fact_id,
            user_id=user_id,
            household_id=household_id,
            description=f"Knowledge cached ({domain})",
            details={"domain": domain, "valid_until": valid_until.isoformat()},
        )

    @staticmethod
    def knowledge_rejected(
        domain: str,
        reason: str,
        detail: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.KNOWLEDGE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="knowledge_fact",
            user_id=user_id,
            description=f"Generated answer rejected: {reason}",
            details={"domain": domain, "reason": reason, "detail": detail},
        )

    @staticmethod
    def knowledge_purged(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.KNOWLEDGE_PURGED,
            entity_type="knowledge_fact",
            description=f"Expired knowledge removed: {count}",
            details={"deleted": count},
        )

    @staticmethod
    def remote_call_failed(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_CALL_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Remote call failed: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

    @staticmethod
    def upload_failed(
        filename: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="upload",
            description=f"Upload failed: {filename}",
            error_message=error_message,
            correlation_id=correlation_id,
        )

    @staticmethod
    def analytics(
        name: str,
        user_id: Optional[str] = None,
        properties: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYTICS,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description=f"Analytics: {name}",
            details={"name": name, **(properties or {})},
        )
