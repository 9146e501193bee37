"""Extraction options and parser limits.

Limits and logging settings use pydantic-settings so every field can be
overridden via env vars.  ``ExtractionOptions`` is built per call from
caller-supplied values and is immutable once validated.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParserLimits(BaseSettings):
    """Bounds on the work a single parse may do on untrusted input."""

    model_config = SettingsConfigDict(env_prefix="MAIL_ATTACHMENTS_", frozen=True)

    max_depth: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Maximum nesting depth of multipart / embedded message containers",
    )
    max_decoded_bytes: int = Field(
        default=256 * 1024 * 1024,
        ge=0,
        description="Maximum cumulative decoded leaf size per message, in bytes",
    )
    max_parts: int = Field(
        default=10_000,
        ge=1,
        description="Maximum number of MIME parts built per message",
    )


class LoggingConfig(BaseSettings):
    """Logging settings for the command line entry point."""

    log_json: bool = Field(
        default=False,
        description="Emit JSON lines instead of console output",
    )
    log_level: str = Field(default="INFO", description="Root log level name")


class ExtractionOptions(BaseModel):
    """Where and what to write for ``extract_attachments_to_disk``."""

    model_config = ConfigDict(frozen=True)

    directory: Path = Field(
        default=Path("."),
        description="Target directory, created if absent",
    )
    prefix: str = Field(
        default="",
        description="String prepended to every written filename",
    )
    mime_types: frozenset[str] = Field(
        default_factory=frozenset,
        description="Allowed content types; empty allows all",
    )

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if "/" in value or "\\" in value or "\x00" in value:
            raise ValueError("prefix must not contain path separators or NUL")
        if value in (".", ".."):
            raise ValueError("prefix must not be a relative directory reference")
        return value

    @field_validator("mime_types", mode="before")
    @classmethod
    def _normalize_mime_types(cls, value: Iterable[str] | None) -> frozenset[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        return frozenset(v.strip().lower() for v in value if v and v.strip())

    def allows(self, content_type: str) -> bool:
        """Return True if *content_type* passes the allow-set."""
        if not self.mime_types:
            return True
        return content_type.lower() in self.mime_types
