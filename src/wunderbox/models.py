"""Canonical Pydantic models shared across wunderbox modules.

Configuration is an explicit value handed to
:class:`~wunderbox.provider.Provider`, never a process-wide singleton.
:func:`~wunderbox.config.resolve_config` builds a :class:`ProviderConfig`
from the config file and the environment; hosts embedding the provider can
also construct one directly.

All models use Pydantic v2. Secret fields are excluded from ``repr`` so
that configs can be logged without leaking credentials.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_ENDPOINT = "https://a.wunderlist.com/api/v1/"


class Credentials(BaseModel):
    """Credentials for the task-management API.

    Every field is optional: a config with neither ``token`` nor an
    ``email``/``password`` pair is valid and surfaces as
    :class:`~wunderbox.exceptions.NoToken` on the first request that needs
    one.
    """

    client_id: Optional[str] = Field(
        default=None, description="Application client id sent as X-Client-ID"
    )
    token: Optional[str] = Field(
        default=None, repr=False, description="Pre-issued access token"
    )
    email: Optional[str] = Field(default=None, description="Login email")
    password: Optional[str] = Field(
        default=None, repr=False, description="Login password"
    )

    @property
    def can_login(self) -> bool:
        """Whether both login credentials are present."""
        return bool(self.email and self.password)

    def masked(self) -> dict[str, Optional[str]]:
        """Return a display-safe dict with secrets replaced by ``***``."""
        return {
            "client_id": self.client_id,
            "token": "***" if self.token else None,
            "email": self.email,
            "password": "***" if self.password else None,
        }


class RequestConfig(BaseModel):
    """HTTP transport settings applied to every API call."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheConfig(BaseModel):
    """Response cache settings."""

    enabled: bool = Field(default=True, description="Enable response caching")
    lifetime_hours: float = Field(
        default=1, ge=0, description="How long a cached response stays valid"
    )
    directory: Optional[Path] = Field(
        default=None, description="Cache root (defaults to the XDG cache dir)"
    )

    @property
    def ttl_seconds(self) -> float:
        """The lifetime in seconds, fractions included."""
        return self.lifetime_hours * 60 * 60


class ProviderConfig(BaseModel):
    """Everything a :class:`~wunderbox.provider.Provider` needs to run.

    Persisted as ``config.json`` under the wunderbox config directory and
    overlaid with environment variables by
    :func:`~wunderbox.config.resolve_config`.
    """

    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="API base URL")
    credentials: Credentials = Field(default_factory=Credentials)
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    token_dir: Optional[Path] = Field(
        default=None, description="Where the token file lives (defaults to the temp dir)"
    )

    @field_validator("endpoint")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        # same normalisation httpx applies to base_url
        return value if value.endswith("/") else value + "/"
