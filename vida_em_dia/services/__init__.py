"""Services package: storage, file uploads and remote collaborators."""

from vida_em_dia.services.files import (
    CloudinaryFileService,
    FileStorageInterface,
    FileTooLargeError,
    FileUploadError,
)
from vida_em_dia.services.storage import (
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

__all__ = [
    # File services
    "CloudinaryFileService",
    "FileStorageInterface",
    "FileTooLargeError",
    "FileUploadError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "CreditCardStorageInterface",
    "DuplicateError",
    "KnowledgeStorageInterface",
    "NotFoundError",
    "StorageError",
    "TaskStorageInterface",
    "TaxRecordStorageInterface",
]
