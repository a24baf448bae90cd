"""
Configuration Management for Vida em Dia

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external collaborators exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FAQ_PATH = Path(__file__).resolve().parent.parent / "data" / "ir_faq_2026.json"


class CloudinarySettings(BaseSettings):
    """Cloudinary file storage configuration (chat uploads)."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    upload_folder: str = Field(
        default="chat_uploads",
        description="Folder that receives documents sent through the chat"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    households_sheet_name: str = Field(default="Households")
    tasks_sheet_name: str = Field(default="Tasks")
    incomes_sheet_name: str = Field(default="Incomes")
    deductions_sheet_name: str = Field(default="TaxDeductibleExpenses")
    traffic_fines_sheet_name: str = Field(default="TrafficFines")
    credit_cards_sheet_name: str = Field(default="CreditCards")
    transactions_sheet_name: str = Field(default="CreditCardTransactions")
    knowledge_sheet_name: str = Field(default="KnowledgeFacts")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (remote answers and defense drafts)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AssistantSettings(BaseSettings):
    """
    Conversation pipeline settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    pending_action_ttl_minutes: int = Field(
        default=5,
        ge=1,
        le=60,
        description="How long a proposed action can wait for confirmation"
    )
    history_turns: int = Field(
        default=5,
        ge=0,
        le=5,
        description="Conversation turns forwarded to the remote answer function"
    )
    projection_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Months covered by the credit limit projection"
    )
    faq_path: Path = Field(
        default=DEFAULT_FAQ_PATH,
        description="Local FAQ corpus used when the remote answer is unavailable"
    )
    deduction_confidence_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum analysis confidence to propose saving a deduction"
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def assistant(self) -> AssistantSettings:
        return AssistantSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Optional[bool | str]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus an `<name>_error`
    entry for every section that failed. Useful for startup checks.
    """
    results: dict[str, Optional[bool | str]] = {}
    settings = get_settings()

    for name in ("cloudinary", "google_sheets", "gemini", "assistant"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
