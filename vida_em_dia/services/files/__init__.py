"""File storage services package."""

from vida_em_dia.services.files.cloudinary_service import CloudinaryFileService
from vida_em_dia.services.files.interface import (
    FileStorageInterface,
    FileTooLargeError,
    FileUploadError,
)

__all__ = [
    "CloudinaryFileService",
    "FileStorageInterface",
    "FileTooLargeError",
    "FileUploadError",
]
