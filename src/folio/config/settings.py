"""
Runtime fetch settings, overridable through FOLIO_* environment variables.

The CLI loads a .env file with python-dotenv before calling
FetchSettings.from_env(); library callers can build FetchSettings directly.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from folio.config.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RETRY_DELAY_MS,
    REQUEST_TIMEOUT_SECONDS,
)
from folio.exceptions import EnvConfigError
from folio.schemas.market_output import FetchOptions

ENV_PREFIX = "FOLIO_"

_ENV_FIELDS: dict[str, str] = {
    "max_retries": "MAX_RETRIES",
    "retry_delay_ms": "RETRY_DELAY_MS",
    "cache_ttl_seconds": "CACHE_TTL_SECONDS",
    "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
    "max_workers": "MAX_WORKERS",
}


class FetchSettings(BaseModel):
    """Default policy knobs for the market-data layer."""

    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0, le=10)
    retry_delay_ms: int = Field(DEFAULT_RETRY_DELAY_MS, ge=0)
    cache_ttl_seconds: int = Field(DEFAULT_CACHE_TTL_SECONDS, ge=0)
    request_timeout_seconds: float = Field(REQUEST_TIMEOUT_SECONDS, gt=0)
    max_workers: int = Field(DEFAULT_MAX_WORKERS, ge=1, le=64)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FetchSettings":
        """Build settings from FOLIO_* variables; unset ones keep defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            first = e.errors()[0]
            name = ENV_PREFIX + _ENV_FIELDS[str(first["loc"][0])]
            raise EnvConfigError(
                f"{name} is invalid ({first['msg']}), got {values.get(str(first['loc'][0]))!r}"
            ) from e

    def fetch_options(self, **overrides) -> FetchOptions:
        """FetchOptions seeded from these settings."""
        base = {
            "max_retries": self.max_retries,
            "retry_delay_ms": self.retry_delay_ms,
            "cache_ttl_seconds": self.cache_ttl_seconds,
        }
        base.update(overrides)
        return FetchOptions(**base)
