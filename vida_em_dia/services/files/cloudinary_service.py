"""
Chat Upload Storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. It accepts images and PDFs through one API (resource_type="auto")
2. Reliable cloud infrastructure
3. Returns a public HTTPS URL the analysis function can fetch

Uploads are never retried here; a failure surfaces as FileUploadError
and the chat answers with a friendly message instead.
"""

import hashlib
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from vida_em_dia.config import get_settings
from vida_em_dia.models.finance import utc_now
from vida_em_dia.services.files.interface import (
    FileStorageInterface,
    FileTooLargeError,
    FileUploadError,
)


class CloudinaryFileService(FileStorageInterface):
    """
    Stores chat uploads under `{upload_folder}/{user_id}/`.

    Flow:
    1. Reject files over the configured size
    2. Upload with an auto-detected resource type
    3. Return the secure URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._assistant_settings = get_settings().assistant
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self, user_id: str, filename: str) -> str:
        """
        Generate a unique public ID for Cloudinary.

        Format: {user_id}/{timestamp}_{filename_hash}
        """
        timestamp = int(utc_now().timestamp() * 1000)
        filename_hash = hashlib.md5(filename.encode()).hexdigest()[:8]
        return f"{user_id}/{timestamp}_{filename_hash}"

    async def upload(
        self,
        content: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None,
    ) -> str:
        if len(content) > self._assistant_settings.max_upload_size_bytes:
            raise FileTooLargeError(
                f"{filename} exceeds {self._assistant_settings.max_upload_size_mb} MB"
            )

        self._configure()

        try:
            result = cloudinary.uploader.upload(
                content,
                public_id=self._generate_public_id(user_id, filename),
                folder=self._settings.upload_folder,
                resource_type="auto",
                context={"filename": filename, "content_type": content_type or ""},
            )
        except cloudinary.exceptions.Error as e:
            raise FileUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise FileUploadError(f"Failed to upload file: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise FileUploadError("No URL returned from Cloudinary")
        return url
