"""
Household Reports

DESIGN DECISION: Reports are DETERMINISTIC and READ-ONLY.
The assistant only ever speaks about numbers computed here from stored
records. It never estimates a balance or invents a risk count.
"""

from datetime import date
from typing import Optional

from vida_em_dia.models.finance import (
    FinancialHealth,
    FinancialStatus,
    HealthStatus,
    HouseholdStatus,
    HouseholdStatusCounts,
    Income,
    Task,
)
from vida_em_dia.services.storage import TaskStorageInterface


# Balance below this share of the month's income is a warning
WARNING_MARGIN = 0.1

TOP_PRIORITIES = 3

_SEVERITY = {HealthStatus.RISK: 0, HealthStatus.ATTENTION: 1, HealthStatus.OK: 2}


def format_brl(value: float) -> str:
    """Format an amount the pt-BR way: R$ 1.234,56"""
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,.2f}"
    # 1,234.56 -> 1.234,56
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {grouped}"


def compute_household_status(tasks: list[Task]) -> HouseholdStatus:
    """
    Count open tasks per health status and pick the top priorities.

    The household is as bad as its worst open task.
    """
    open_tasks = [t for t in tasks if t.is_open]
    counts = HouseholdStatusCounts(
        ok=sum(1 for t in open_tasks if t.health_status == HealthStatus.OK),
        attention=sum(1 for t in open_tasks if t.health_status == HealthStatus.ATTENTION),
        risk=sum(1 for t in open_tasks if t.health_status == HealthStatus.RISK),
    )

    if counts.risk:
        overall = HealthStatus.RISK
    elif counts.attention:
        overall = HealthStatus.ATTENTION
    else:
        overall = HealthStatus.OK

    flagged = [t for t in open_tasks if t.health_status != HealthStatus.OK]
    flagged.sort(key=lambda t: (_SEVERITY[t.health_status], t.due_date or date.max))

    return HouseholdStatus(
        household_status=overall,
        counts=counts,
        top_priorities=flagged[:TOP_PRIORITIES],
    )


def _same_month(day: Optional[date], today: date) -> bool:
    return day is not None and day.year == today.year and day.month == today.month


def compute_financial_status(
    incomes: list[Income],
    tasks: list[Task],
    today: date,
) -> FinancialStatus:
    """
    Balance of the current month.

    Income counts when it is recurring or received this month.
    Commitments are open tasks with an amount due this month, plus any
    overdue open task with an amount.
    """
    total_income = sum(
        i.amount for i in incomes
        if i.is_recurring or _same_month(i.received_on, today)
    )
    total_commitments = sum(
        t.amount for t in tasks
        if t.is_open and t.amount is not None and t.due_date is not None
        and (_same_month(t.due_date, today) or t.due_date < today)
    )
    balance = round(total_income - total_commitments, 2)

    if balance < 0:
        status = FinancialHealth.DEFICIT
    elif balance < total_income * WARNING_MARGIN:
        status = FinancialHealth.WARNING
    else:
        status = FinancialHealth.SURPLUS

    return FinancialStatus(
        total_income=round(total_income, 2),
        total_commitments=round(total_commitments, 2),
        balance=balance,
        status=status,
    )


class HouseholdReports:
    """
    Loads a household's records and builds the read-only reports.

    Storage errors propagate; the resolver decides how to apologise.
    """

    def __init__(self, storage: TaskStorageInterface):
        self._storage = storage

    async def household_status(self, household_id: str) -> HouseholdStatus:
        tasks = await self._storage.list_tasks(household_id)
        return compute_household_status(tasks)

    async def financial_status(self, household_id: str, today: date) -> FinancialStatus:
        incomes = await self._storage.list_incomes(household_id)
        tasks = await self._storage.list_tasks(household_id)
        return compute_financial_status(incomes, tasks, today)

    async def tasks_due_on(self, household_id: str, day: date) -> list[Task]:
        tasks = await self._storage.list_tasks(household_id)
        return [t for t in tasks if t.is_open and t.due_date == day]
