"""
Platform Callback Configuration.

The platform is the external caller that owns engines and builds; it is
told about build started/completed/canceled/faulted/restarting events.
When PLATFORM_CALLBACK_URL is unset events are only logged.

Exports:
    PlatformConfig
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from .defaults import PlatformDefaults


class PlatformConfig(BaseModel):
    """
    Platform callback configuration.
    """

    callback_url: Optional[str] = Field(
        default=None,
        description="Base URL; events are POSTed to {callback_url}/builds/{build_id}/{event}",
        examples=["https://platform.example.org/api/v1"]
    )

    api_key: Optional[str] = Field(
        default=None,
        repr=False,
        description="Sent as X-Api-Key when set"
    )

    timeout_seconds: float = Field(default=PlatformDefaults.TIMEOUT_SECONDS, gt=0)

    max_retries: int = Field(default=PlatformDefaults.MAX_RETRIES, ge=1)

    retry_base_delay_seconds: float = Field(
        default=PlatformDefaults.RETRY_BASE_DELAY_SECONDS,
        ge=0,
        description="Backoff base; attempt n waits base * 2**(n-1)"
    )

    @field_validator("callback_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value:
            return value.rstrip("/")
        return value or None

    @property
    def is_configured(self) -> bool:
        return self.callback_url is not None

    @classmethod
    def from_environment(cls) -> "PlatformConfig":
        """Load from environment variables."""
        return cls(
            callback_url=os.environ.get("PLATFORM_CALLBACK_URL"),
            api_key=os.environ.get("PLATFORM_API_KEY"),
            timeout_seconds=float(os.environ.get("PLATFORM_TIMEOUT_SECONDS", str(PlatformDefaults.TIMEOUT_SECONDS))),
            max_retries=int(os.environ.get("PLATFORM_MAX_RETRIES", str(PlatformDefaults.MAX_RETRIES))),
            retry_base_delay_seconds=float(os.environ.get("PLATFORM_RETRY_BASE_DELAY", str(PlatformDefaults.RETRY_BASE_DELAY_SECONDS))),
        )
