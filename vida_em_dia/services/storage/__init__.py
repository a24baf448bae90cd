"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory one serves tests and
offline use.
"""

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
from vida_em_dia.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryCreditCardStorage,
    InMemoryKnowledgeStorage,
    InMemoryTaskStorage,
    InMemoryTaxRecordStorage,
)
from vida_em_dia.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCreditCardStorage,
    GoogleSheetsKnowledgeStorage,
    GoogleSheetsTaskStorage,
    GoogleSheetsTaxRecordStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CreditCardStorageInterface",
    "KnowledgeStorageInterface",
    "TaskStorageInterface",
    "TaxRecordStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryCreditCardStorage",
    "InMemoryKnowledgeStorage",
    "InMemoryTaskStorage",
    "InMemoryTaxRecordStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCreditCardStorage",
    "GoogleSheetsKnowledgeStorage",
    "GoogleSheetsTaskStorage",
    "GoogleSheetsTaxRecordStorage",
]
