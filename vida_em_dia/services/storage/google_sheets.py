"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Household members can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one household)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Each worksheet holds one model per row. Scalar fields are written as
text; nested fields (lists, dicts, sub-models) are JSON-serialized.
"""

import json
from datetime import datetime
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential

from vida_em_dia.config import get_settings
from vida_em_dia.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    ConnectionError,
    CreditCardStorageInterface,
    DuplicateError,
    KnowledgeStorageInterface,
    NotFoundError,
    StorageError,
    TaskStorageInterface,
    TaxRecordStorageInterface,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


# Column mappings per sheet
HOUSEHOLD_COLUMNS = ["id", "name", "owner_user_id", "member_user_ids"]

TASK_COLUMNS = [
    "id",
    "household_id",
    "user_id",
    "title",
    "description",
    "category",
    "entry_type",
    "status",
    "health_status",
    "impact_level",
    "due_date",
    "amount",
    "created_at",
    "updated_at",
]

INCOME_COLUMNS = ["id", "household_id", "description", "amount", "received_on", "is_recurring"]

DEDUCTION_COLUMNS = [
    "id",
    "user_id",
    "household_id",
    "doc_id",
    "expense_type",
    "provider_name",
    "amount",
    "date",
    "confidence_score",
    "is_shared",
    "created_at",
]

TRAFFIC_FINE_COLUMNS = [
    "document_id",
    "user_id",
    "household_id",
    "details",
    "user_answers",
    "defense_markdown",
    "updated_at",
]

CARD_COLUMNS = [
    "id",
    "household_id",
    "user_id",
    "name",
    "last_four_digits",
    "brand",
    "credit_limit",
    "current_balance",
    "closing_day",
    "due_day",
    "is_shared",
]

TRANSACTION_COLUMNS = [
    "id",
    "card_id",
    "household_id",
    "title",
    "amount",
    "transaction_date",
    "installment_current",
    "installment_total",
    "is_third_party",
    "third_party_name",
    "reimbursement_status",
]

KNOWLEDGE_COLUMNS = [
    "id",
    "domain",
    "fact_key",
    "question_hash",
    "question_text",
    "question_normalized",
    "answer_text",
    "answer_json",
    "sources",
    "confidence_level",
    "valid_until",
    "model_provider",
    "model_name",
    "retrieved_at",
]

# Columns holding JSON-serialized nested values
JSON_COLUMNS = {"member_user_ids", "details", "user_answers", "answer_json", "sources"}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "household_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def model_to_row(model: BaseModel, columns: list[str]) -> list[str]:
    """Serialize a model into a row following the column order."""
    data = model.model_dump(mode="json")
    row = []
    for column in columns:
        value = data.get(column)
        if value is None:
            row.append("")
        elif isinstance(value, (dict, list)):
            row.append(json.dumps(value, ensure_ascii=False))
        elif isinstance(value, bool):
            row.append(str(value).lower())
        else:
            row.append(str(value))
    return row


def row_to_model(model_cls: Type[ModelT], columns: list[str], row: list) -> ModelT:
    """
    Parse a row back into a model.

    Empty cells fall back to the model default; JSON cells are decoded.
    """
    data: dict[str, Any] = {}
    for index, column in enumerate(columns):
        value = row[index] if index < len(row) else ""
        if value == "":
            continue
        if column in JSON_COLUMNS:
            value = json.loads(value)
        data[column] = value
    return model_cls.model_validate(data)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for the connection.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    @property
    def settings(self):
        return self._settings


class _SheetTable:
    """Row-level helpers shared by every Sheets-backed store."""

    def __init__(self, client: GoogleSheetsClient, title: str, columns: list[str], rows: int = 1000):
        self._client = client
        self._title = title
        self._columns = columns
        self._rows = rows

    def sheet(self) -> gspread.Worksheet:
        return self._client.get_sheet(self._title, self._columns, self._rows)

    def read_all(self, model_cls: Type[ModelT]) -> list[ModelT]:
        """Parse every data row, skipping malformed ones."""
        models = []
        for row in self.sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                models.append(row_to_model(model_cls, self._columns, row))
            except (ValueError, TypeError):
                continue  # Skip malformed rows
        return models

    def append(self, model: BaseModel) -> None:
        self.sheet().append_row(model_to_row(model, self._columns), value_input_option="RAW")

    def find_row_index(self, key: str) -> Optional[int]:
        """1-based sheet row of the record whose first column is `key`."""
        for idx, row in enumerate(self.sheet().get_all_values()[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    def replace(self, row_index: int, model: BaseModel) -> None:
        self.sheet().update(
            range_name=f"A{row_index}",
            values=[model_to_row(model, self._columns)],
            value_input_option="RAW",
        )


class GoogleSheetsTaskStorage(TaskStorageInterface):
    """Households, tasks and incomes, one worksheet each."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._households = _SheetTable(self._client, settings.households_sheet_name, HOUSEHOLD_COLUMNS)
        self._tasks = _SheetTable(self._client, settings.tasks_sheet_name, TASK_COLUMNS)
        self._incomes = _SheetTable(self._client, settings.incomes_sheet_name, INCOME_COLUMNS)

    async def get_household_for_user(self, user_id: str) -> Optional[Household]:
        try:
            for household in self._households.read_all(Household):
                if household.has_member(user_id):
                    return household
            return None
        except Exception as e:
            raise StorageError(f"Failed to get household: {e}")

    async def list_tasks(self, household_id: str) -> list[Task]:
        try:
            return [t for t in self._tasks.read_all(Task) if t.household_id == household_id]
        except Exception as e:
            raise StorageError(f"Failed to list tasks: {e}")

    async def get_task(self, task_id: str) -> Optional[Task]:
        try:
            for task in self._tasks.read_all(Task):
                if task.id == task_id:
                    return task
            return None
        except Exception as e:
            raise StorageError(f"Failed to get task: {e}")

    async def save_task(self, task: Task) -> bool:
        try:
            if self._tasks.find_row_index(task.id):
                raise DuplicateError(f"Task already exists: {task.id}")
            self._tasks.append(task)
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save task: {e}")

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        try:
            row_index = self._tasks.find_row_index(task_id)
            if row_index is None:
                raise NotFoundError(f"Task not found: {task_id}")
            current = await self.get_task(task_id)
            data = current.model_dump()
            data.update(updates)
            data["id"] = task_id
            data["updated_at"] = utc_now()
            updated = Task.model_validate(data)
            self._tasks.replace(row_index, updated)
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update task: {e}")

    async def list_incomes(self, household_id: str) -> list[Income]:
        try:
            return [i for i in self._incomes.read_all(Income) if i.household_id == household_id]
        except Exception as e:
            raise StorageError(f"Failed to list incomes: {e}")


class GoogleSheetsTaxRecordStorage(TaxRecordStorageInterface):

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._deductions = _SheetTable(self._client, settings.deductions_sheet_name, DEDUCTION_COLUMNS)
        self._fines = _SheetTable(self._client, settings.traffic_fines_sheet_name, TRAFFIC_FINE_COLUMNS)

    async def save_deduction(self, expense: TaxDeductibleExpense) -> bool:
        try:
            self._deductions.append(expense)
            return True
        except Exception as e:
            raise StorageError(f"Failed to save deduction: {e}")

    async def save_traffic_fine(self, record: TrafficFineRecord) -> bool:
        try:
            row_index = self._fines.find_row_index(record.document_id)
            if row_index:
                self._fines.replace(row_index, record)
            else:
                self._fines.append(record)
            return True
        except Exception as e:
            raise StorageError(f"Failed to save traffic fine: {e}")


class GoogleSheetsCreditCardStorage(CreditCardStorageInterface):

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._cards = _SheetTable(self._client, settings.credit_cards_sheet_name, CARD_COLUMNS)
        self._transactions = _SheetTable(
            self._client, settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    async def get_card(self, card_id: str) -> Optional[CreditCard]:
        try:
            for card in self._cards.read_all(CreditCard):
                if card.id == card_id:
                    return card
            return None
        except Exception as e:
            raise StorageError(f"Failed to get card: {e}")

    async def list_cards(self, household_id: str) -> list[CreditCard]:
        try:
            return [c for c in self._cards.read_all(CreditCard) if c.household_id == household_id]
        except Exception as e:
            raise StorageError(f"Failed to list cards: {e}")

    async def list_transactions(self, card_id: str) -> list[CreditCardTransaction]:
        try:
            return [
                t for t in self._transactions.read_all(CreditCardTransaction)
                if t.card_id == card_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def post_transaction(self, transaction: CreditCardTransaction) -> bool:
        card = await self.get_card(transaction.card_id)
        if card is None:
            raise NotFoundError(f"Card not found: {transaction.card_id}")
        try:
            self._transactions.append(transaction)
            # Balance update after the row is written; a failure here leaves
            # the transaction recorded and the balance stale.
            card.current_balance += transaction.amount
            self._cards.replace(self._cards.find_row_index(card.id), card)
            return True
        except Exception as e:
            raise StorageError(f"Failed to post transaction: {e}")


class GoogleSheetsKnowledgeStorage(KnowledgeStorageInterface):

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._facts = _SheetTable(
            self._client, self._client.settings.knowledge_sheet_name, KNOWLEDGE_COLUMNS, rows=5000
        )

    async def find_fact(
        self,
        domain: str,
        now: datetime,
        question_hash: Optional[str] = None,
        fact_key: Optional[str] = None,
    ) -> Optional[KnowledgeFact]:
        try:
            candidates = [
                f for f in self._facts.read_all(KnowledgeFact)
                if f.domain == domain
                and f.is_valid_at(now)
                and (f.fact_key == fact_key if fact_key else f.question_hash == question_hash)
            ]
        except Exception as e:
            raise StorageError(f"Failed to read knowledge: {e}")
        if not candidates:
            return None
        return max(candidates, key=lambda f: f.valid_until)

    async def save_fact(self, fact: KnowledgeFact) -> bool:
        try:
            self._facts.append(fact)
            return True
        except Exception as e:
            raise StorageError(f"Failed to save knowledge: {e}")

    async def delete_expired(self, now: datetime) -> int:
        try:
            sheet = self._facts.sheet()
            rows = sheet.get_all_values()[1:]
            valid_until_col = KNOWLEDGE_COLUMNS.index("valid_until")
            expired = []
            for idx, row in enumerate(rows, start=2):
                if not row or len(row) <= valid_until_col or not row[valid_until_col]:
                    continue
                if datetime.fromisoformat(row[valid_until_col]) <= now:
                    expired.append(idx)
            # Bottom-up so earlier indices stay valid
            for idx in reversed(expired):
                sheet.delete_rows(idx)
            return len(expired)
        except Exception as e:
            raise StorageError(f"Failed to purge knowledge: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._events = _SheetTable(
            self._client, self._client.settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            user_id=safe_get(6) or None,
            household_id=safe_get(7) or None,
            correlation_id=UUID(safe_get(8)) if safe_get(8) else None,
            description=safe_get(9),
            details=json.loads(safe_get(10)) if safe_get(10) else {},
            error_message=safe_get(11) or None,
            is_user_action=safe_get(12).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._events.sheet().get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._events.sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events
