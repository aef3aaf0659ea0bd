"""Configuration management for the mailbox sync client."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, HttpUrl, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .utils import SUFFIX_MAX_LENGTH, SuffixOptions

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()


class Settings(BaseSettings):
    """App configuration derived from environment variables."""

    backend_base_url: HttpUrl = Field("http://127.0.0.1:8765", alias="SUBINBOX_BACKEND_URL")
    backend_timeout: float = Field(30.0, alias="SUBINBOX_BACKEND_TIMEOUT")
    store_db: Path = Field(Path("data/subinbox.db"), alias="SUBINBOX_STORE_DB")
    mail_domain: str = Field("2925.com", alias="SUBINBOX_MAIL_DOMAIN")

    refresh_interval_ms: int = Field(5000, alias="SUBINBOX_REFRESH_INTERVAL_MS")
    refresh_immediate: bool = Field(True, alias="SUBINBOX_REFRESH_IMMEDIATE")
    forwarding_mode: Literal["aliases", "account_pattern"] = Field(
        "aliases", alias="SUBINBOX_FORWARDING_MODE"
    )

    suffix_include_letters: bool = Field(True, alias="SUBINBOX_SUFFIX_LETTERS")
    suffix_include_symbols: bool = Field(False, alias="SUBINBOX_SUFFIX_SYMBOLS")
    suffix_length: int | None = Field(None, alias="SUBINBOX_SUFFIX_LENGTH")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("suffix_length", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("refresh_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("SUBINBOX_REFRESH_INTERVAL_MS must be positive.")
        return value

    @field_validator("suffix_length")
    @classmethod
    def _suffix_length_in_range(cls, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= SUFFIX_MAX_LENGTH:
            raise ValueError("SUBINBOX_SUFFIX_LENGTH must be between 1 and 20.")
        return value

    @property
    def backend_url(self) -> str:
        return str(self.backend_base_url).rstrip("/")

    @property
    def suffix_options(self) -> SuffixOptions:
        return SuffixOptions(
            include_letters=self.suffix_include_letters,
            include_symbols=self.suffix_include_symbols,
            use_random_length=self.suffix_length is None,
            fixed_length=self.suffix_length or SUFFIX_MAX_LENGTH,
        )


def load_settings(**overrides) -> Settings:
    """Build settings, reporting bad environment values as a ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
