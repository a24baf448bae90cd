"""
Credit Limit Projection

How much of a card's limit is held hostage in each of the coming months.
An installment plan occupies the limit with every slice not yet billed;
a single purchase occupies it in its own month (and in any month before
it, when projecting backwards).

All functions here are pure. CreditRadarService only adds storage access.
"""

from datetime import date
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from vida_em_dia.models.finance import CreditCard, CreditCardTransaction
from vida_em_dia.services.storage.interface import CreditCardStorageInterface, StorageError


logger = structlog.get_logger()

PROJECTION_MONTHS = 6

PT_BR_MONTHS = (
    "jan", "fev", "mar", "abr", "mai", "jun",
    "jul", "ago", "set", "out", "nov", "dez",
)


class LimitUsage(BaseModel):
    occupied: float
    remaining: float
    usage_percentage: float


class ProjectionPoint(BaseModel):
    """Limit usage in one calendar month."""

    month: str = Field(..., description="Key like 'out/26'")
    label: str = Field(..., description="Short pt-BR month name like 'out'")
    used_amount: float
    remaining_amount: float
    usage_percentage: float


def months_between(transaction_date: date, target: date) -> int:
    """Whole months from the transaction's month to the target's. Negative if target is earlier."""
    return (target.year - transaction_date.year) * 12 + (target.month - transaction_date.month)


def transaction_contribution(transaction: CreditCardTransaction, target: date) -> float:
    months_diff = months_between(transaction.transaction_date, target)

    if transaction.installment_total > 1:
        months_since_start = months_diff + (transaction.installment_current - 1)
        remaining = transaction.installment_total - months_since_start
        if remaining > 0:
            return remaining * (transaction.amount / transaction.installment_total)
        return 0.0

    # Kept as-is: any month on or before the purchase month counts in full
    if months_diff <= 0:
        return transaction.amount
    return 0.0


def occupied_amount(
    card: CreditCard,
    transactions: list[CreditCardTransaction],
    target: date,
) -> LimitUsage:
    occupied = sum(transaction_contribution(t, target) for t in transactions)
    return LimitUsage(
        occupied=occupied,
        remaining=max(0.0, card.credit_limit - occupied),
        usage_percentage=min(100.0, occupied / card.credit_limit * 100),
    )


def add_months(day: date, months: int) -> date:
    """First day of the month `months` after day's month."""
    index = day.month - 1 + months
    return date(day.year + index // 12, index % 12 + 1, 1)


def month_label(day: date) -> str:
    return PT_BR_MONTHS[day.month - 1]


def month_key(day: date) -> str:
    return f"{month_label(day)}/{day.year % 100:02d}"


def build_series(
    card: CreditCard,
    transactions: list[CreditCardTransaction],
    start: Optional[date] = None,
    months: int = PROJECTION_MONTHS,
) -> list[ProjectionPoint]:
    """One point per calendar month, starting at start's month (default: this month)."""
    start = start or date.today()
    points = []
    for offset in range(months):
        target = add_months(start, offset)
        usage = occupied_amount(card, transactions, target)
        points.append(
            ProjectionPoint(
                month=month_key(target),
                label=month_label(target),
                used_amount=usage.occupied,
                remaining_amount=usage.remaining,
                usage_percentage=usage.usage_percentage,
            )
        )
    return points


class CreditRadarService:
    """Loads a card with its transactions and projects its limit usage."""

    def __init__(self, storage: CreditCardStorageInterface, months: int = PROJECTION_MONTHS):
        self._storage = storage
        self._months = months

    async def list_cards(self, household_id: str) -> list[CreditCard]:
        try:
            return await self._storage.list_cards(household_id)
        except StorageError as e:
            logger.error("card_list_failed", household_id=household_id, error=str(e))
            return []

    async def get_limit_projection(
        self,
        card_id: str,
        start: Optional[date] = None,
    ) -> list[ProjectionPoint]:
        """
        Project the card's limit usage.

        Returns an empty list when the card is missing or storage fails.
        """
        try:
            card = await self._storage.get_card(card_id)
            if card is None:
                logger.warning("projection_card_not_found", card_id=card_id)
                return []
            transactions = await self._storage.list_transactions(card_id)
        except StorageError as e:
            logger.error("projection_failed", card_id=card_id, error=str(e))
            return []

        return build_series(card, transactions, start=start, months=self._months)
