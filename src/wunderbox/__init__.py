"""wunderbox -- Wunderlist data provider for info-box widgets.

The package fetches data from the Wunderlist REST API, caches parsed
responses on disk for a configurable number of hours, and manages the
access token: taken from configuration, a persisted token file, or an
email/password login, and refreshed once when the API answers 401.

Typical use from a host application::

    from wunderbox import Provider, resolve_config

    with Provider(resolve_config()) as provider:
        lists = provider.get("lists")

Modules:
    provider: The request/cache/token pipeline.
    client: httpx wrapper for the API endpoint.
    cache: Namespaced diskcache response store.
    token_store: Persisted token file.
    models: Pydantic configuration models.
    config: XDG paths, config file and environment resolution.
    exceptions: Error taxonomy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting for the CLI.
    app: Typer CLI.
"""

__version__ = "0.1.0"

from wunderbox.config import resolve_config  # noqa: E402
from wunderbox.exceptions import (  # noqa: E402
    AuthFailure,
    EmptyData,
    InvalidResponse,
    LoginFailure,
    NoToken,
    WunderboxError,
)
from wunderbox.models import ProviderConfig  # noqa: E402
from wunderbox.provider import Provider, flush_all  # noqa: E402

__all__ = [
    "AuthFailure",
    "EmptyData",
    "InvalidResponse",
    "LoginFailure",
    "NoToken",
    "Provider",
    "ProviderConfig",
    "WunderboxError",
    "flush_all",
    "resolve_config",
]
