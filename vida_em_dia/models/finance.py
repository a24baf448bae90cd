"""
Household Finance Data Models

These models define the records the assistant reads and mutates:
tasks, incomes, credit cards, savings goals, tax-deductible expenses
and traffic fines. They are data contracts only; the behavior that
consumes them lives in the assistant and credit packages.

DESIGN DECISION: We use Pydantic v2 so records coming back from storage
are validated once at the boundary instead of trusted everywhere.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time used as the default timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class CategoryType(str, Enum):
    """Task categories shown on the dashboard."""
    VEHICLE = "vehicle"
    HOME = "home"
    DOCUMENTS = "documents"
    TAXES = "taxes"
    CONTRACTS = "contracts"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class HealthStatus(str, Enum):
    """Risk classification of a task; drives the playbook lookup."""
    OK = "ok"
    ATTENTION = "attention"
    RISK = "risk"


class ImpactLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EntryType(str, Enum):
    EXPENSE = "expense"
    OBLIGATION = "obligation"


class DeductionType(str, Enum):
    HEALTH_PLAN = "health_plan"
    MEDICAL = "medical"
    EDUCATION = "education"
    DEPENDENT = "dependent"
    PENSION = "pension"
    PGBL = "pgbl"
    OTHER = "other"


class CardBrand(str, Enum):
    VISA = "visa"
    MASTERCARD = "mastercard"
    ELO = "elo"
    AMEX = "amex"
    HIPERCARD = "hipercard"
    OTHER = "outros"


class ReimbursementStatus(str, Enum):
    PENDING = "pending"
    REQUESTED = "requested"
    RECEIVED = "received"


class FinancialHealth(str, Enum):
    SURPLUS = "surplus"
    WARNING = "warning"
    DEFICIT = "deficit"


class FineRecommendation(str, Enum):
    """What the notice analysis recommends for a traffic fine."""
    PAY = "pay"
    DEFEND = "defend"


# =============================================================================
# HOUSEHOLD & TASKS
# =============================================================================

class Household(BaseModel):
    """A household groups the members whose records are shared."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=120)
    owner_user_id: str
    member_user_ids: list[str] = Field(default_factory=list)

    def has_member(self, user_id: str) -> bool:
        return user_id == self.owner_user_id or user_id in self.member_user_ids


class Task(BaseModel):
    """
    A bill, obligation or chore tracked on the dashboard.

    The assistant can complete it (COMPLETE_TASK), update it
    (GENERIC_UPDATE) or create one from a traffic fine (ADD_TRAFFIC_FINE).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    household_id: str
    user_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: CategoryType = CategoryType.DOCUMENTS
    entry_type: EntryType = EntryType.OBLIGATION
    status: TaskStatus = TaskStatus.PENDING
    health_status: HealthStatus = HealthStatus.OK
    impact_level: ImpactLevel = ImpactLevel.LOW
    due_date: Optional[date] = None
    amount: Optional[float] = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_open(self) -> bool:
        return self.status != TaskStatus.COMPLETED


class Income(BaseModel):
    """A recurring or one-off income entry."""

    id: str = Field(default_factory=new_id)
    household_id: str
    description: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    received_on: date
    is_recurring: bool = True


# =============================================================================
# CREDIT CARDS
# =============================================================================

class CreditCard(BaseModel):
    """
    A credit instrument.

    current_balance grows whenever a transaction is posted against it.
    The projection engine only reads it.
    """

    id: str = Field(default_factory=new_id)
    household_id: str
    user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=80)
    last_four_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    brand: CardBrand = CardBrand.OTHER
    credit_limit: float = Field(..., gt=0)
    current_balance: float = Field(default=0.0, ge=0)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)
    is_shared: bool = False


class CreditCardTransaction(BaseModel):
    """
    A posted charge, single or part of an installment plan.

    installment_current tells which slice this record represents
    at creation time (1-based).
    """

    id: str = Field(default_factory=new_id)
    card_id: str
    household_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    transaction_date: date
    installment_current: int = Field(default=1, ge=1)
    installment_total: int = Field(default=1, ge=1)
    is_third_party: bool = False
    third_party_name: Optional[str] = None
    reimbursement_status: ReimbursementStatus = ReimbursementStatus.PENDING

    @model_validator(mode='after')
    def validate_installments(self) -> 'CreditCardTransaction':
        """The current slice cannot be past the last one."""
        if self.installment_current > self.installment_total:
            raise ValueError("installment_current cannot exceed installment_total")
        return self

    @property
    def is_installment_plan(self) -> bool:
        return self.installment_total > 1


class SavingsGoal(BaseModel):
    """A savings target (emergency fund, objective, tax reserve)."""

    id: str = Field(default_factory=new_id)
    household_id: str
    name: str = Field(..., min_length=1, max_length=120)
    goal_type: str = Field(default="objective", pattern="^(emergency|objective|automatic|tax)$")
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0.0, ge=0)
    deadline: Optional[date] = None
    is_locked: bool = False

    @property
    def progress(self) -> float:
        return min(1.0, self.current_amount / self.target_amount)


# =============================================================================
# TAX & TRAFFIC RECORDS
# =============================================================================

class TaxDeductibleExpense(BaseModel):
    """A receipt saved to the fiscal folder (SAVE_DEDUCTION)."""

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    household_id: Optional[str] = None
    doc_id: Optional[str] = None
    expense_type: DeductionType
    provider_name: Optional[str] = None
    amount: float = Field(..., ge=0)
    date: date
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    is_shared: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class TrafficFineDetails(BaseModel):
    """Fields extracted from a traffic notice by the analysis collaborator."""
    model_config = ConfigDict(extra="ignore")

    document_id: Optional[str] = None
    plate: Optional[str] = None
    infraction_date: Optional[date] = None
    infraction_time: Optional[str] = None
    location: Optional[str] = None
    nature: Optional[str] = None
    points: int = Field(default=0, ge=0)
    amount: float = Field(default=0.0, ge=0)
    issuer: Optional[str] = None
    infraction_code: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    recommendation: FineRecommendation = FineRecommendation.DEFEND
    recommendation_text: Optional[str] = None
    summary_human: Optional[str] = None
    sne_discount_40: Optional[float] = None
    sne_discount_20: Optional[float] = None


class DocumentKind(str, Enum):
    """What the document analysis recognised in an upload."""
    TRAFFIC = "traffic"
    HEALTH_PLAN = "health_plan"
    MEDICAL = "medical"
    EDUCATION = "education"
    OTHER = "other"


class DocumentAnalysis(BaseModel):
    """
    Result of analysing an uploaded document.

    traffic_fine is set only when kind is TRAFFIC.
    """
    model_config = ConfigDict(extra="ignore")

    document_id: str = Field(default_factory=new_id)
    doc_type: Optional[str] = None
    kind: DocumentKind = DocumentKind.OTHER
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    amount: Optional[float] = Field(default=None, ge=0)
    issuer: Optional[str] = None
    document_date: Optional[date] = None
    traffic_fine: Optional[TrafficFineDetails] = None

    @property
    def deduction_type(self) -> Optional[DeductionType]:
        """The deductible category this document would fall under, if any."""
        mapping = {
            DocumentKind.HEALTH_PLAN: DeductionType.HEALTH_PLAN,
            DocumentKind.MEDICAL: DeductionType.MEDICAL,
            DocumentKind.EDUCATION: DeductionType.EDUCATION,
        }
        return mapping.get(self.kind)


class TrafficFineRecord(BaseModel):
    """A traffic fine persisted together with its defense, if any."""

    document_id: str
    user_id: Optional[str] = None
    household_id: Optional[str] = None
    details: TrafficFineDetails
    user_answers: list[dict] = Field(default_factory=list)
    defense_markdown: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# REPORTS (read-only aggregates)
# =============================================================================

class HouseholdStatusCounts(BaseModel):
    ok: int = 0
    attention: int = 0
    risk: int = 0


class HouseholdStatus(BaseModel):
    """Aggregate health of the open tasks of a household."""

    household_status: HealthStatus
    counts: HouseholdStatusCounts
    top_priorities: list[Task] = Field(default_factory=list)


class FinancialStatus(BaseModel):
    """Income against pending commitments for the current month."""

    total_income: float
    total_commitments: float
    balance: float
    status: FinancialHealth
