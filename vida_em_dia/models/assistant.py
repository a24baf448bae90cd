"""
Conversation Data Models

Messages, intents and the PendingAction envelope that carries a proposed
mutation until the user confirms it.

CRITICAL: A PendingAction is PROPOSED state, NOT applied state.
Nothing in it is persisted until the user explicitly confirms,
and only while it has not expired.

DESIGN DECISION: Payloads are a tagged union keyed by the action type.
Each ActionType has exactly one payload shape, so the executor can
dispatch exhaustively instead of trusting a free-form dict.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
    model_validator,
)

from vida_em_dia.models.finance import (
    DeductionType,
    TaskStatus,
    TrafficFineDetails,
    new_id,
    utc_now,
)
from vida_em_dia.models.knowledge import (
    AnswerJson,
    ConfidenceLevel,
    HistoryTurn,
    KnowledgeSource,
)


PENDING_ACTION_TTL = timedelta(minutes=5)
MAX_SUMMARY_LENGTH = 300

# Target reference used when an action is not bound to a task
NO_TARGET = "none"


# =============================================================================
# ENUMS
# =============================================================================

class Intent(str, Enum):
    """
    Closed set of intents produced by the keyword classifier.

    UNKNOWN is the fallback; every input maps to exactly one tag.
    """
    TRAFFIC_ANALYSIS = "TRAFFIC_ANALYSIS"
    IR_BASICS = "IR_BASICS"
    IR_INCOME = "IR_INCOME"
    IR_DEDUCTIONS = "IR_DEDUCTIONS"
    IR_DEPENDENTS = "IR_DEPENDENTS"
    IR_INVESTMENTS = "IR_INVESTMENTS"
    IR_PATRIMONY = "IR_PATRIMONY"
    IR_REFUND = "IR_REFUND"
    IR_CHECKLIST = "IR_CHECKLIST"
    STATUS_REPORT = "STATUS_REPORT"
    GENERAL_HEALTH = "GENERAL_HEALTH"
    ACTION_PROPOSAL = "ACTION_PROPOSAL"
    FINANCIAL_STATUS = "FINANCIAL_STATUS"
    RISK_STATUS = "RISK_STATUS"
    UPLOAD_INTENT = "UPLOAD_INTENT"
    UNKNOWN = "UNKNOWN"

    @property
    def is_tax_module(self) -> bool:
        return self.value.startswith("IR_")


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ActionType(str, Enum):
    """Every mutation the assistant may propose."""
    COMPLETE_TASK = "COMPLETE_TASK"
    SAVE_DEDUCTION = "SAVE_DEDUCTION"
    ADD_TRAFFIC_FINE = "ADD_TRAFFIC_FINE"
    ANALYZE_DEFENSE = "ANALYZE_DEFENSE"
    GENERATE_TRAFFIC_DEFENSE = "GENERATE_TRAFFIC_DEFENSE"
    GENERIC_UPDATE = "GENERIC_UPDATE"


# =============================================================================
# ACTION PAYLOADS (one shape per ActionType)
# =============================================================================

class CompleteTaskPayload(BaseModel):
    action_type: Literal["COMPLETE_TASK"] = "COMPLETE_TASK"
    status: TaskStatus = TaskStatus.COMPLETED


class SaveDeductionPayload(BaseModel):
    action_type: Literal["SAVE_DEDUCTION"] = "SAVE_DEDUCTION"
    doc_id: Optional[str] = None
    expense_type: DeductionType
    provider_name: Optional[str] = None
    amount: float = Field(..., ge=0)
    date: Optional[str] = None
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    is_shared: bool = True


class AddTrafficFinePayload(BaseModel):
    action_type: Literal["ADD_TRAFFIC_FINE"] = "ADD_TRAFFIC_FINE"
    fine: TrafficFineDetails


class AnalyzeDefensePayload(BaseModel):
    action_type: Literal["ANALYZE_DEFENSE"] = "ANALYZE_DEFENSE"
    fine: TrafficFineDetails


class DefenseAnswer(BaseModel):
    """One answered interview question."""

    question: str
    answer: bool


class GenerateDefensePayload(BaseModel):
    action_type: Literal["GENERATE_TRAFFIC_DEFENSE"] = "GENERATE_TRAFFIC_DEFENSE"
    fine: TrafficFineDetails
    answers: list[DefenseAnswer] = Field(default_factory=list)


class GenericUpdatePayload(BaseModel):
    action_type: Literal["GENERIC_UPDATE"] = "GENERIC_UPDATE"
    updates: dict[str, Any] = Field(default_factory=dict)


ActionPayload = Annotated[
    Union[
        CompleteTaskPayload,
        SaveDeductionPayload,
        AddTrafficFinePayload,
        AnalyzeDefensePayload,
        GenerateDefensePayload,
        GenericUpdatePayload,
    ],
    Field(discriminator="action_type"),
]

_payload_adapter: TypeAdapter = TypeAdapter(ActionPayload)


def parse_payload(action_type: ActionType, raw: Optional[dict]) -> ActionPayload:
    """
    Build the typed payload for an action type from a loose dict.

    Raises pydantic.ValidationError when the dict does not fit the shape.
    """
    data = dict(raw or {})
    data["action_type"] = action_type.value
    return _payload_adapter.validate_python(data)


# =============================================================================
# PENDING ACTION
# =============================================================================

class PendingAction(BaseModel):
    """
    A proposed mutation awaiting user confirmation.

    CRITICAL: Single-use. Once executed, cancelled or expired it is
    detached from its message and never re-attached.
    """

    id: str = Field(default_factory=new_id)
    type: ActionType
    task_id: str = NO_TARGET
    payload: ActionPayload
    summary: str = Field(..., min_length=1, max_length=MAX_SUMMARY_LENGTH)
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    @model_validator(mode='before')
    @classmethod
    def default_expiry(cls, data: Any) -> Any:
        """expires_at defaults to created_at + 5 minutes."""
        if isinstance(data, dict) and data.get("expires_at") is None:
            data = dict(data)
            created = data.get("created_at") or utc_now()
            if isinstance(created, str):
                created = datetime.fromisoformat(created)
            data["created_at"] = created
            data["expires_at"] = created + PENDING_ACTION_TTL
        return data

    @model_validator(mode='after')
    def validate_payload_matches_type(self) -> 'PendingAction':
        """The payload tag must agree with the action type."""
        if self.payload.action_type != self.type:
            raise ValueError(
                f"Payload for {self.payload.action_type} cannot back a {self.type.value} action"
            )
        if self.expires_at < self.created_at:
            raise ValueError("expires_at cannot be before created_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        """Expired only strictly after expires_at."""
        return now > self.expires_at

    @classmethod
    def propose(
        cls,
        action_type: ActionType,
        payload: ActionPayload,
        summary: str,
        now: datetime,
        task_id: str = NO_TARGET,
        ttl: timedelta = PENDING_ACTION_TTL,
    ) -> 'PendingAction':
        """
        Open a fresh confirmation window starting at `now`.

        Summaries come from collaborators; over-long ones are clipped.
        """
        if len(summary) > MAX_SUMMARY_LENGTH:
            summary = summary[: MAX_SUMMARY_LENGTH - 1].rstrip() + "…"
        return cls(
            type=action_type,
            task_id=task_id,
            payload=payload,
            summary=summary,
            created_at=now,
            expires_at=now + ttl,
        )


# =============================================================================
# MESSAGES
# =============================================================================

class Suggestion(BaseModel):
    """A disambiguation / quick-reply chip."""

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=80)
    text: Optional[str] = None

    @property
    def reply_text(self) -> str:
        return self.text or self.title


class Message(BaseModel):
    """
    One turn in a conversation.

    The conversation log is append-only; the only mutations allowed
    are clearing pending_action and suggestions once resolved.
    """

    id: str = Field(default_factory=new_id)
    text: str
    sender: Sender = Sender.ASSISTANT
    timestamp: datetime = Field(default_factory=utc_now)
    intent: Optional[Intent] = None

    pending_action: Optional[PendingAction] = None
    suggestions: list[Suggestion] = Field(default_factory=list)
    answer_json: Optional[AnswerJson] = None

    # Provenance of remote answers
    is_cached: Optional[bool] = None
    confidence_level: Optional[ConfidenceLevel] = None
    sources: list[KnowledgeSource] = Field(default_factory=list)

    @classmethod
    def from_user(cls, text: str, now: Optional[datetime] = None) -> 'Message':
        return cls(text=text, sender=Sender.USER, timestamp=now or utc_now())


# =============================================================================
# EXECUTION RESULTS
# =============================================================================

class ExecutionOutcome(str, Enum):
    """Terminal result of a confirmation attempt."""
    EXECUTED = "executed"
    EXPIRED = "expired"
    FAILED = "failed"              # action stays attached, user may retry
    NOT_PENDING = "not_pending"    # nothing to confirm (already settled)
    CANCELLED = "cancelled"


class ExecutionResult(BaseModel):
    """What a confirm/cancel call did."""

    outcome: ExecutionOutcome
    action_id: Optional[str] = None
    action_type: Optional[ActionType] = None
    reply: Optional[Message] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ExecutionOutcome.EXECUTED


# =============================================================================
# CONVERSATION CONTEXT
# =============================================================================

class ConversationContext(BaseModel):
    """Who is asking, and the recent turns the remote function may see."""

    user_id: Optional[str] = None
    household_id: Optional[str] = None
    history: list[HistoryTurn] = Field(default_factory=list, max_length=5)
