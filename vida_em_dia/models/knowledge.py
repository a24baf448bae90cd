"""
Knowledge Models

Cached remote answers (KnowledgeFact), the local FAQ items, and the
request/response contracts of the remote answer function.

CRITICAL: A KnowledgeFact is never served once valid_until has passed.
Expired rows are cache misses, not stale answers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vida_em_dia.models.finance import new_id, utc_now


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class KnowledgeSource(BaseModel):
    """A citation backing a remote answer."""

    url: str
    title: str = ""
    excerpt: Optional[str] = None


class KeyFact(BaseModel):
    label: str
    value: str


class AnswerJson(BaseModel):
    """Structured side of an answer: key facts and next-step chips."""
    model_config = ConfigDict(extra="allow")

    domain: Optional[str] = None
    key_facts: list[KeyFact] = Field(default_factory=list)
    suggested_next_actions: list[str] = Field(default_factory=list)


class KnowledgeFact(BaseModel):
    """
    A validated, time-boxed answer to a previously asked question.

    Keyed by domain plus either question_hash or fact_key.
    """

    id: str = Field(default_factory=new_id)
    domain: str
    fact_key: Optional[str] = None
    question_hash: str
    question_text: str
    question_normalized: str
    answer_text: str
    answer_json: AnswerJson = Field(default_factory=AnswerJson)
    sources: list[KnowledgeSource] = Field(default_factory=list)
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM
    valid_until: datetime
    model_provider: str = "google"
    model_name: Optional[str] = None
    retrieved_at: datetime = Field(default_factory=utc_now)

    def is_valid_at(self, now: datetime) -> bool:
        return self.valid_until > now


class FaqItem(BaseModel):
    """One question/answer pair of the local FAQ corpus."""

    id: str
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    category: str = "general"


# =============================================================================
# VALIDATION
# =============================================================================

class RejectionReason(str, Enum):
    INVALID_STRUCTURE = "invalid_structure"
    NO_SOURCES = "no_sources"
    UNTRUSTED_SOURCES = "untrusted_sources"
    EXCESSIVE_CERTAINTY = "excessive_certainty"


class ValidationOutcome(BaseModel):
    """Result of validating a generated answer. reason is set when ok is False."""

    ok: bool
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None


class CandidateAnswer(BaseModel):
    """
    A freshly generated answer, BEFORE validation.

    All fields are optional because the model may omit any of them;
    the validator decides whether it can be cached and served.
    """
    model_config = ConfigDict(extra="ignore")

    answer_text: Optional[str] = None
    answer_json: Optional[AnswerJson] = None
    confidence_level: Optional[ConfidenceLevel] = None
    sources: list[KnowledgeSource] = Field(default_factory=list)
    ttl_days: Optional[int] = Field(default=None, ge=0)
    intent_mode: Optional[str] = None
    pending_action: Optional[dict[str, Any]] = None

    @field_validator('confidence_level', mode='before')
    @classmethod
    def lower_confidence(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


# =============================================================================
# REMOTE ANSWER FUNCTION CONTRACT
# =============================================================================

class HistoryTurn(BaseModel):
    role: str = Field(..., pattern="^(user|model)$")
    text: str


class RemoteAnswerRequest(BaseModel):
    """Request sent to the remote answer function."""

    question: str
    history: list[HistoryTurn] = Field(default_factory=list, max_length=5)
    household_id: Optional[str] = None
    user_id: Optional[str] = None
    domain: str = "general"
    image_url: Optional[str] = None


class RemoteActionDescriptor(BaseModel):
    """A mutation the remote function suggests; the resolver wraps it."""
    model_config = ConfigDict(extra="ignore")

    type: str = "GENERIC_UPDATE"
    task_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    summary: Optional[str] = None


class RemoteAnswer(BaseModel):
    """Response of the remote answer function."""
    model_config = ConfigDict(extra="ignore")

    answer_text: str = ""
    pending_action: Optional[RemoteActionDescriptor] = None
    intent_mode: Optional[str] = None
    is_cached: bool = False
    confidence_level: Optional[ConfidenceLevel] = None
    sources: list[KnowledgeSource] = Field(default_factory=list)
    answer_json: Optional[AnswerJson] = None
    key_facts: list[KeyFact] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_answer(self) -> bool:
        return bool(self.answer_text and self.answer_text.strip())
