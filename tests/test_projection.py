"""Tests for the credit limit projection."""

import pytest
from datetime import date
from hypothesis import given
from hypothesis import strategies as st

from vida_em_dia.credit.projection import (
    PROJECTION_MONTHS,
    CreditRadarService,
    add_months,
    build_series,
    month_key,
    months_between,
    occupied_amount,
    transaction_contribution,
)
from vida_em_dia.models.finance import CreditCard, CreditCardTransaction
from vida_em_dia.services.storage.interface import StorageError
from vida_em_dia.services.storage.memory import InMemoryCreditCardStorage


START = date(2026, 10, 19)


def make_card(limit: float = 2000.0) -> CreditCard:
    return CreditCard(
        id="card-1",
        household_id="house-1",
        name="Nubank",
        credit_limit=limit,
        closing_day=3,
        due_day=10,
    )


def make_tx(amount, day, total=1, current=1, card_id="card-1") -> CreditCardTransaction:
    return CreditCardTransaction(
        card_id=card_id,
        title="Compra",
        amount=amount,
        transaction_date=day,
        installment_total=total,
        installment_current=current,
    )


@st.composite
def transactions(draw):
    total = draw(st.integers(min_value=1, max_value=24))
    return make_tx(
        amount=draw(st.floats(min_value=0, max_value=1_000_000, allow_nan=False)),
        day=draw(st.dates(min_value=date(2024, 1, 1), max_value=date(2028, 12, 31))),
        total=total,
        current=draw(st.integers(min_value=1, max_value=total)),
    )


class TestMonthArithmetic:
    """Tests for calendar-month helpers."""

    def test_months_between(self):
        """Test whole-month distance ignores the day."""
        assert months_between(date(2026, 10, 31), date(2026, 11, 1)) == 1
        assert months_between(date(2026, 10, 1), date(2027, 1, 31)) == 3
        assert months_between(date(2026, 10, 1), date(2026, 8, 1)) == -2

    def test_add_months_crosses_year(self):
        """Test adding months lands on the first of the month."""
        assert add_months(date(2026, 11, 30), 2) == date(2027, 1, 1)
        assert add_months(date(2026, 1, 15), 0) == date(2026, 1, 1)

    def test_month_key(self):
        """Test keys use the pt-BR short name and a two-digit year."""
        assert month_key(date(2026, 10, 1)) == "out/26"
        assert month_key(date(2027, 2, 1)) == "fev/27"


class TestTransactionContribution:
    """Tests for how much of the limit one transaction holds."""

    def test_installments_release_one_slice_per_month(self):
        """Test each billed slice frees its share of the limit."""
        tx = make_tx(1200, date(2026, 10, 5), total=12)
        assert transaction_contribution(tx, date(2026, 10, 1)) == 1200
        assert transaction_contribution(tx, date(2026, 11, 1)) == 1100
        assert transaction_contribution(tx, date(2027, 9, 1)) == 100
        assert transaction_contribution(tx, date(2027, 10, 1)) == 0

    def test_installment_recorded_mid_plan(self):
        """Test installment_current shifts the remaining slices."""
        tx = make_tx(1000, date(2026, 8, 1), total=10, current=3)
        assert transaction_contribution(tx, date(2026, 10, 1)) == 600

    def test_single_purchase_in_its_month(self):
        """Test a one-off charge holds its full amount in its month."""
        tx = make_tx(300, date(2026, 10, 10))
        assert transaction_contribution(tx, date(2026, 10, 1)) == 300
        assert transaction_contribution(tx, date(2026, 11, 1)) == 0

    def test_single_purchase_counts_before_its_month(self):
        """Test earlier target months also count a future one-off charge."""
        tx = make_tx(300, date(2026, 12, 10))
        assert transaction_contribution(tx, date(2026, 10, 1)) == 300


class TestOccupiedAmount:
    """Tests for the per-month aggregate."""

    def test_sum_and_percentage(self):
        """Test contributions add up against the limit."""
        usage = occupied_amount(
            make_card(2000),
            [make_tx(1200, date(2026, 10, 5), total=12), make_tx(300, date(2026, 10, 10))],
            date(2026, 10, 1),
        )
        assert usage.occupied == 1500
        assert usage.remaining == 500
        assert usage.usage_percentage == 75

    def test_capped_at_limit(self):
        """Test usage never goes past 100% nor remaining below zero."""
        usage = occupied_amount(make_card(2000), [make_tx(3000, START)], START)
        assert usage.usage_percentage == 100
        assert usage.remaining == 0

    def test_no_transactions(self):
        """Test an idle card is fully available."""
        usage = occupied_amount(make_card(2000), [], START)
        assert usage.occupied == 0
        assert usage.remaining == 2000
        assert usage.usage_percentage == 0


class TestBuildSeries:
    """Tests for the six-month series."""

    def test_series(self):
        """Test one point per month from the start month."""
        points = build_series(
            make_card(2000),
            [make_tx(1200, date(2026, 10, 5), total=12), make_tx(300, date(2026, 10, 10))],
            start=START,
        )
        assert len(points) == PROJECTION_MONTHS
        assert [p.month for p in points] == [
            "out/26", "nov/26", "dez/26", "jan/27", "fev/27", "mar/27",
        ]
        assert [p.label for p in points][:2] == ["out", "nov"]
        assert [p.used_amount for p in points] == [1500, 1100, 1000, 900, 800, 700]
        assert points[0].usage_percentage == 75
        assert points[1].remaining_amount == 900

    def test_custom_length(self):
        """Test the month count is configurable."""
        assert len(build_series(make_card(), [], start=START, months=3)) == 3

    @given(st.lists(transactions(), max_size=10), st.floats(min_value=1, max_value=1_000_000))
    def test_bounds(self, txs, limit):
        """Test every point stays inside the card's limit."""
        for point in build_series(make_card(limit), txs, start=START):
            assert 0 <= point.usage_percentage <= 100
            assert 0 <= point.remaining_amount <= limit
            assert point.used_amount >= 0

    @given(st.lists(transactions(), max_size=10))
    def test_past_purchases_only_release_limit(self, txs):
        """Test usage from purchases made up to the start month never grows."""
        past = [t for t in txs if months_between(t.transaction_date, START) >= 0]
        used = [p.used_amount for p in build_series(make_card(), past, start=START)]
        assert all(later <= earlier + 1e-6 for earlier, later in zip(used, used[1:]))


class TestCreditRadarService:
    """Tests for the storage-backed projection."""

    @pytest.mark.asyncio
    async def test_projection(self):
        """Test the service projects the stored card's transactions."""
        storage = InMemoryCreditCardStorage(
            cards=[make_card(2000)],
            transactions=[make_tx(300, date(2026, 10, 10))],
        )
        points = await CreditRadarService(storage).get_limit_projection("card-1", start=START)
        assert len(points) == PROJECTION_MONTHS
        assert points[0].used_amount == 300

    @pytest.mark.asyncio
    async def test_missing_card(self):
        """Test an unknown card yields an empty series."""
        service = CreditRadarService(InMemoryCreditCardStorage())
        assert await service.get_limit_projection("nope", start=START) == []

    @pytest.mark.asyncio
    async def test_storage_failure(self):
        """Test storage errors yield an empty series and no cards."""

        class Broken(InMemoryCreditCardStorage):
            async def get_card(self, card_id):
                raise StorageError("down")

            async def list_cards(self, household_id):
                raise StorageError("down")

        service = CreditRadarService(Broken())
        assert await service.get_limit_projection("card-1", start=START) == []
        assert await service.list_cards("house-1") == []

    @pytest.mark.asyncio
    async def test_posting_grows_balance(self):
        """Test posting a charge adds to the card balance."""
        storage = InMemoryCreditCardStorage(cards=[make_card(2000)])
        await storage.post_transaction(make_tx(250, START))
        card = await storage.get_card("card-1")
        assert card.current_balance == 250
