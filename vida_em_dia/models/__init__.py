"""
Data Models Package

This package contains all Pydantic models used by Vida em Dia.
All data flowing through the assistant must conform to these schemas.
"""

from vida_em_dia.models.finance import (
    CardBrand,
    CategoryType,
    CreditCard,
    CreditCardTransaction,
    DeductionType,
    DocumentAnalysis,
    DocumentKind,
    EntryType,
    FinancialHealth,
    FinancialStatus,
    FineRecommendation,
    HealthStatus,
    Household,
    HouseholdStatus,
    HouseholdStatusCounts,
    ImpactLevel,
    Income,
    ReimbursementStatus,
    SavingsGoal,
    Task,
    TaskStatus,
    TaxDeductibleExpense,
    TrafficFineDetails,
    TrafficFineRecord,
)
from vida_em_dia.models.knowledge import (
    AnswerJson,
    CandidateAnswer,
    ConfidenceLevel,
    FaqItem,
    HistoryTurn,
    KeyFact,
    KnowledgeFact,
    KnowledgeSource,
    RejectionReason,
    RemoteActionDescriptor,
    RemoteAnswer,
    RemoteAnswerRequest,
    ValidationOutcome,
)
from vida_em_dia.models.assistant import (
    NO_TARGET,
    PENDING_ACTION_TTL,
    ActionType,
    AddTrafficFinePayload,
    ConversationContext,
    AnalyzeDefensePayload,
    CompleteTaskPayload,
    DefenseAnswer,
    ExecutionOutcome,
    ExecutionResult,
    GenerateDefensePayload,
    GenericUpdatePayload,
    Intent,
    Message,
    PendingAction,
    SaveDeductionPayload,
    Sender,
    Suggestion,
    parse_payload,
)
from vida_em_dia.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance records
    "CardBrand",
    "CategoryType",
    "CreditCard",
    "CreditCardTransaction",
    "DeductionType",
    "DocumentAnalysis",
    "DocumentKind",
    "EntryType",
    "FinancialHealth",
    "FinancialStatus",
    "FineRecommendation",
    "HealthStatus",
    "Household",
    "HouseholdStatus",
    "HouseholdStatusCounts",
    "ImpactLevel",
    "Income",
    "ReimbursementStatus",
    "SavingsGoal",
    "Task",
    "TaskStatus",
    "TaxDeductibleExpense",
    "TrafficFineDetails",
    "TrafficFineRecord",
    # Knowledge
    "AnswerJson",
    "CandidateAnswer",
    "ConfidenceLevel",
    "FaqItem",
    "HistoryTurn",
    "KeyFact",
    "KnowledgeFact",
    "KnowledgeSource",
    "RejectionReason",
    "RemoteActionDescriptor",
    "RemoteAnswer",
    "RemoteAnswerRequest",
    "ValidationOutcome",
    # Conversation
    "NO_TARGET",
    "PENDING_ACTION_TTL",
    "ActionType",
    "AddTrafficFinePayload",
    "ConversationContext",
    "AnalyzeDefensePayload",
    "CompleteTaskPayload",
    "DefenseAnswer",
    "ExecutionOutcome",
    "ExecutionResult",
    "GenerateDefensePayload",
    "GenericUpdatePayload",
    "Intent",
    "Message",
    "PendingAction",
    "SaveDeductionPayload",
    "Sender",
    "Suggestion",
    "parse_payload",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
