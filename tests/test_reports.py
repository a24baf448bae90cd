"""Tests for the read-only household reports."""

import pytest
from datetime import date

from vida_em_dia.models.finance import (
    FinancialHealth,
    HealthStatus,
    Income,
    Task,
    TaskStatus,
)
from vida_em_dia.queries.reports import (
    HouseholdReports,
    compute_financial_status,
    compute_household_status,
    format_brl,
)


TODAY = date(2026, 10, 19)


def task(title, health=HealthStatus.OK, due=None, amount=None, status=TaskStatus.PENDING):
    return Task(
        household_id="house-1",
        title=title,
        health_status=health,
        due_date=due,
        amount=amount,
        status=status,
    )


class TestFormatBrl:
    """Tests for pt-BR currency formatting."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "R$ 0,00"),
            (12.5, "R$ 12,50"),
            (1234.56, "R$ 1.234,56"),
            (1234567.891, "R$ 1.234.567,89"),
            (-300, "-R$ 300,00"),
        ],
    )
    def test_format(self, value, expected):
        """Test thousands use dots and decimals use a comma."""
        assert format_brl(value) == expected


class TestHouseholdStatus:
    """Tests for compute_household_status."""

    def test_counts_open_tasks_only(self):
        """Test completed tasks are ignored."""
        status = compute_household_status([
            task("a", HealthStatus.RISK),
            task("b", HealthStatus.ATTENTION),
            task("c", HealthStatus.OK),
            task("d", HealthStatus.RISK, status=TaskStatus.COMPLETED),
        ])
        assert (status.counts.risk, status.counts.attention, status.counts.ok) == (1, 1, 1)
        assert status.household_status == HealthStatus.RISK

    def test_worst_status_wins(self):
        """Test attention without risk is attention."""
        status = compute_household_status([task("a", HealthStatus.ATTENTION), task("b")])
        assert status.household_status == HealthStatus.ATTENTION

    def test_empty_household_is_ok(self):
        """Test no tasks means nothing to worry about."""
        status = compute_household_status([])
        assert status.household_status == HealthStatus.OK
        assert status.top_priorities == []

    def test_top_priorities(self):
        """Test risks first, then attention, earliest due date first, at most three."""
        status = compute_household_status([
            task("attention-soon", HealthStatus.ATTENTION, due=date(2026, 10, 20)),
            task("risk-late", HealthStatus.RISK, due=date(2026, 12, 1)),
            task("risk-undated", HealthStatus.RISK),
            task("risk-soon", HealthStatus.RISK, due=date(2026, 10, 21)),
            task("fine", HealthStatus.OK, due=date(2026, 10, 1)),
        ])
        assert [t.title for t in status.top_priorities] == [
            "risk-soon", "risk-late", "risk-undated",
        ]


class TestFinancialStatus:
    """Tests for compute_financial_status."""

    def test_surplus(self):
        """Test income comfortably above commitments."""
        status = compute_financial_status(
            [Income(household_id="house-1", description="Salário", amount=5000, received_on=date(2026, 1, 5))],
            [task("Luz", due=date(2026, 10, 25), amount=300)],
            TODAY,
        )
        assert status.total_income == 5000
        assert status.total_commitments == 300
        assert status.balance == 4700
        assert status.status == FinancialHealth.SURPLUS

    def test_commitments_rules(self):
        """Test only open, dated, valued tasks due this month or overdue count."""
        status = compute_financial_status(
            [],
            [
                task("this month", due=date(2026, 10, 30), amount=100),
                task("overdue", due=date(2026, 8, 1), amount=50),
                task("next month", due=date(2026, 11, 1), amount=1000),
                task("no amount", due=date(2026, 10, 20)),
                task("no date", amount=1000),
                task("paid", due=date(2026, 10, 20), amount=1000, status=TaskStatus.COMPLETED),
            ],
            TODAY,
        )
        assert status.total_commitments == 150
        assert status.status == FinancialHealth.DEFICIT

    def test_one_off_income_only_in_its_month(self):
        """Test a non-recurring income counts only in the month received."""
        incomes = [
            Income(household_id="h", description="Bônus", amount=1000,
                   received_on=date(2026, 10, 2), is_recurring=False),
            Income(household_id="h", description="Freela", amount=700,
                   received_on=date(2026, 9, 2), is_recurring=False),
        ]
        assert compute_financial_status(incomes, [], TODAY).total_income == 1000

    def test_warning_margin(self):
        """Test a balance under 10% of income is a warning."""
        status = compute_financial_status(
            [Income(household_id="h", description="Salário", amount=1000, received_on=TODAY)],
            [task("Aluguel", due=TODAY, amount=950)],
            TODAY,
        )
        assert status.status == FinancialHealth.WARNING


class TestHouseholdReports:
    """Tests for the storage-backed reports."""

    @pytest.mark.asyncio
    async def test_reports(self, task_storage, household):
        """Test reports read the household's stored records."""
        reports = HouseholdReports(task_storage)

        status = await reports.household_status(household.id)
        assert status.counts.risk == 1
        assert status.counts.attention == 1

        financial = await reports.financial_status(household.id, TODAY)
        # IPVA overdue and light bill due this month
        assert financial.total_commitments == 1500
        assert financial.balance == 3500

        due = await reports.tasks_due_on(household.id, date(2026, 10, 25))
        assert [t.id for t in due] == ["task-luz"]
