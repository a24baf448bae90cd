"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and offline use
3. Keep the assistant decoupled from the storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the reads the reports need and the writes the action handlers perform.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from vida_em_dia.models.audit import AuditEvent
from vida_em_dia.models.finance import (
    CreditCard,
    CreditCardTransaction,
    Household,
    Income,
    Task,
    TaxDeductibleExpense,
    TrafficFineRecord,
)
from vida_em_dia.models.knowledge import KnowledgeFact


class TaskStorageInterface(ABC):
    """
    Households, their tasks and incomes.

    Tasks are the only records the conversation pipeline mutates directly.
    """

    @abstractmethod
    async def get_household_for_user(self, user_id: str) -> Optional[Household]:
        """
        Resolve the household a user belongs to.

        Returns:
            The household if the user has one, None otherwise
        """
        pass

    @abstractmethod
    async def list_tasks(self, household_id: str) -> list[Task]:
        """
        List every task of a household, in insertion order.
        """
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]:
        pass

    @abstractmethod
    async def save_task(self, task: Task) -> bool:
        """
        Insert a new task.

        Raises:
            DuplicateError: If a task with the same id exists
        """
        pass

    @abstractmethod
    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        """
        Apply a partial update to a task.

        Args:
            task_id: The task to update
            updates: Field name to new value

        Returns:
            The updated task

        Raises:
            NotFoundError: If the task doesn't exist
            StorageError: If the update doesn't fit the task schema
        """
        pass

    @abstractmethod
    async def list_incomes(self, household_id: str) -> list[Income]:
        pass


class TaxRecordStorageInterface(ABC):
    """Fiscal folder: deductible receipts and traffic fines."""

    @abstractmethod
    async def save_deduction(self, expense: TaxDeductibleExpense) -> bool:
        pass

    @abstractmethod
    async def save_traffic_fine(self, record: TrafficFineRecord) -> bool:
        """
        Insert or replace the record keyed by document_id.
        """
        pass


class CreditCardStorageInterface(ABC):
    """
    Credit cards and their posted transactions.

    Posting a transaction grows the card's current_balance by its amount.
    """

    @abstractmethod
    async def get_card(self, card_id: str) -> Optional[CreditCard]:
        pass

    @abstractmethod
    async def list_cards(self, household_id: str) -> list[CreditCard]:
        pass

    @abstractmethod
    async def list_transactions(self, card_id: str) -> list[CreditCardTransaction]:
        pass

    @abstractmethod
    async def post_transaction(self, transaction: CreditCardTransaction) -> bool:
        """
        Record a transaction and add its amount to the card balance.

        Raises:
            NotFoundError: If the card doesn't exist
        """
        pass


class KnowledgeStorageInterface(ABC):
    """
    Cached knowledge facts.

    Lookups never return a fact whose valid_until is not after `now`.
    """

    @abstractmethod
    async def find_fact(
        self,
        domain: str,
        now: datetime,
        question_hash: Optional[str] = None,
        fact_key: Optional[str] = None,
    ) -> Optional[KnowledgeFact]:
        """
        Find a valid fact of a domain by fact_key (preferred) or question hash.

        When several rows qualify the one with the latest valid_until wins.
        """
        pass

    @abstractmethod
    async def save_fact(self, fact: KnowledgeFact) -> bool:
        pass

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """
        Delete every fact with valid_until at or before `now`.

        Returns:
            Number of deleted facts
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one conversation session).

        Returns:
            List of related events in chronological order
        """
        pass



class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
