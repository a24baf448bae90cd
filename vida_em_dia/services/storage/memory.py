"""
In-Memory Storage Implementation

Process-local storage for tests and offline use. Every interface method
behaves like the Google Sheets backend, including the error types, so
the assistant cannot tell the two apart.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError

from vida_em_dia.models.audit import AuditEvent
from vida_em_dia.models.finance import (
    CreditCard,
    CreditCardTransaction,
    Household,
    Income,
    Task,
    TaxDeductibleExpense,
    TrafficFineRecord,
    utc_now,
)
from vida_em_dia.models.knowledge import KnowledgeFact
from vida_em_dia.services.storage.interface import (
    AuditStorageInterface,
    CreditCardStorageInterface,
    DuplicateError,
    KnowledgeStorageInterface,
    NotFoundError,
    StorageError,
    TaskStorageInterface,
    TaxRecordStorageInterface,
)


class InMemoryTaskStorage(TaskStorageInterface):
    """Households, tasks and incomes kept in dicts."""

    def __init__(
        self,
        households: Optional[list[Household]] = None,
        tasks: Optional[list[Task]] = None,
        incomes: Optional[list[Income]] = None,
    ):
        self._households: dict[str, Household] = {h.id: h for h in households or []}
        self._tasks: dict[str, Task] = {t.id: t for t in tasks or []}
        self._incomes: list[Income] = list(incomes or [])

    async def get_household_for_user(self, user_id: str) -> Optional[Household]:
        for household in self._households.values():
            if household.has_member(user_id):
                return household
        return None

    async def list_tasks(self, household_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.household_id == household_id]

    async def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def save_task(self, task: Task) -> bool:
        if task.id in self._tasks:
            raise DuplicateError(f"Task already exists: {task.id}")
        self._tasks[task.id] = task
        return True

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        data = task.model_dump()
        data.update(updates)
        data["id"] = task.id
        data["updated_at"] = utc_now()
        try:
            updated = Task.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"Invalid task update: {e}")
        self._tasks[task_id] = updated
        return updated

    async def list_incomes(self, household_id: str) -> list[Income]:
        return [i for i in self._incomes if i.household_id == household_id]


class InMemoryTaxRecordStorage(TaxRecordStorageInterface):

    def __init__(self):
        self.deductions: list[TaxDeductibleExpense] = []
        self.traffic_fines: dict[str, TrafficFineRecord] = {}

    async def save_deduction(self, expense: TaxDeductibleExpense) -> bool:
        self.deductions.append(expense)
        return True

    async def save_traffic_fine(self, record: TrafficFineRecord) -> bool:
        self.traffic_fines[record.document_id] = record
        return True


class InMemoryCreditCardStorage(CreditCardStorageInterface):

    def __init__(
        self,
        cards: Optional[list[CreditCard]] = None,
        transactions: Optional[list[CreditCardTransaction]] = None,
    ):
        self._cards: dict[str, CreditCard] = {c.id: c for c in cards or []}
        self._transactions: list[CreditCardTransaction] = list(transactions or [])

    async def get_card(self, card_id: str) -> Optional[CreditCard]:
        return self._cards.get(card_id)

    async def list_cards(self, household_id: str) -> list[CreditCard]:
        return [c for c in self._cards.values() if c.household_id == household_id]

    async def list_transactions(self, card_id: str) -> list[CreditCardTransaction]:
        return [t for t in self._transactions if t.card_id == card_id]

    async def post_transaction(self, transaction: CreditCardTransaction) -> bool:
        card = self._cards.get(transaction.card_id)
        if card is None:
            raise NotFoundError(f"Card not found: {transaction.card_id}")
        self._transactions.append(transaction)
        self._cards[card.id] = card.model_copy(
            update={"current_balance": card.current_balance + transaction.amount}
        )
        return True


class InMemoryKnowledgeStorage(KnowledgeStorageInterface):

    def __init__(self, facts: Optional[list[KnowledgeFact]] = None):
        self.facts: list[KnowledgeFact] = list(facts or [])

    async def find_fact(
        self,
        domain: str,
        now: datetime,
        question_hash: Optional[str] = None,
        fact_key: Optional[str] = None,
    ) -> Optional[KnowledgeFact]:
        candidates = [
            f for f in self.facts
            if f.domain == domain
            and f.is_valid_at(now)
            and (f.fact_key == fact_key if fact_key else f.question_hash == question_hash)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda f: f.valid_until)

    async def save_fact(self, fact: KnowledgeFact) -> bool:
        self.facts.append(fact)
        return True

    async def delete_expired(self, now: datetime) -> int:
        before = len(self.facts)
        self.facts = [f for f in self.facts if f.is_valid_at(now)]
        return before - len(self.facts)


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
