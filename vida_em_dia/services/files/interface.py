"""
File Storage Interface

Documents sent through the chat are stored first and analysed by URL,
so the analysis collaborator never receives raw bytes.
"""

from abc import ABC, abstractmethod
from typing import Optional


class FileStorageInterface(ABC):

    @abstractmethod
    async def upload(
        self,
        content: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store a file and return a URL the analysis collaborator can read.

        Raises:
            FileUploadError: If the file is rejected or the upload fails
        """
        pass


class FileUploadError(Exception):
    """Failed to store an uploaded file."""
    pass


class FileTooLargeError(FileUploadError):
    """File exceeds the configured upload size."""
    pass
