"""The Wunderlist data provider: cache-aside reads with token management.

:class:`Provider` is the one component hosts talk to. Given an API action
and query parameters it returns the parsed response body, handling the
access token and the response cache transparently::

    caller -> Provider.get(action, params)
           -> cache lookup            (hit: return, no network, no token)
           -> token resolution        (memory, config, token file, login)
           -> GET {endpoint}/{action}
           -> on 401: drop token file, retry once with a fresh token
           -> status check, parse, validate
           -> cache store
           -> return

Each call tracks its progress in a :class:`CallState` machine. The retry
budget lives in that per-call state, never on the provider, so a 401 in one
call cannot leak into the next.

Collaborators (HTTP client, cache, token file) are constructor inputs; the
provider keeps no process-wide state.
"""

from __future__ import annotations

import enum
import json
import logging
import threading
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import httpx

from wunderbox.cache import ResponseCache, make_key, sanitize
from wunderbox.client import ApiClient
from wunderbox.config import get_cache_dir, get_token_dir
from wunderbox.exceptions import (
    AuthFailure,
    EmptyData,
    InvalidResponse,
    InvalidUsageError,
    LoginFailure,
    NoToken,
)
from wunderbox.models import ProviderConfig
from wunderbox.token_store import TokenFile

logger = logging.getLogger(__name__)

Body = Union[dict, list]
Scalar = Union[str, int, float, bool]

TOKEN_HEADER = "X-Access-Token"
CLIENT_ID_HEADER = "X-Client-ID"
LOGIN_ACTION = "login"


class CallState(str, enum.Enum):
    """Lifecycle of a single :meth:`Provider.get` call that reaches the network."""

    FRESH = "fresh"
    REQUESTED = "requested"
    UNAUTHORIZED = "unauthorized"
    RETRYING_ONCE = "retrying_once"
    SUCCESS = "success"
    FATAL = "fatal"


_TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.FRESH: frozenset({CallState.REQUESTED, CallState.FATAL}),
    CallState.REQUESTED: frozenset(
        {CallState.SUCCESS, CallState.UNAUTHORIZED, CallState.FATAL}
    ),
    CallState.UNAUTHORIZED: frozenset({CallState.RETRYING_ONCE, CallState.FATAL}),
    CallState.RETRYING_ONCE: frozenset({CallState.SUCCESS, CallState.FATAL}),
    CallState.SUCCESS: frozenset(),
    CallState.FATAL: frozenset(),
}


class _Call:
    """Per-call state: the action being fetched and where the call stands."""

    def __init__(self, action: str) -> None:
        self.action = action
        self.state = CallState.FRESH
        self.history: list[CallState] = [CallState.FRESH]

    @property
    def token_invalid(self) -> bool:
        """Set once the API has rejected a token during this call."""
        return CallState.UNAUTHORIZED in self.history

    def advance(self, new_state: CallState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal call transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


def _is_ok(status: int) -> bool:
    return 200 <= status < 400


def _decode(response: httpx.Response) -> Any:
    """Decode a JSON body, returning ``None`` when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def _check_action(action: str) -> None:
    """Reject actions that would leave the configured endpoint."""
    try:
        url = httpx.URL(action)
    except httpx.InvalidURL as exc:
        raise InvalidUsageError(f"Invalid action '{action}': {exc}") from exc
    if url.scheme or url.host or any(c in action for c in "?#\\"):
        raise InvalidUsageError(f"Action must be a relative API path, got '{action}'")
    if ".." in action.split("/"):
        raise InvalidUsageError(f"Action may not contain '..', got '{action}'")


def _query_value(name: str, value: Any) -> str:
    # bool before int: True is an int too
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise InvalidUsageError(
        f"Query parameter '{name}' must be a string, number or boolean, "
        f"got {type(value).__name__}"
    )


class Provider:
    """Fetches, caches and authenticates requests to the task-management API.

    Args:
        config: Endpoint, credentials, cache and transport settings.
        cache: Response cache. Built from ``config.cache`` under the
            provider's namespace when omitted.
        token_file: Persisted token store. Built under
            :func:`~wunderbox.config.get_token_dir` when omitted.
        client: A ready HTTP client.
        client_factory: Called with *config* to build the HTTP client when
            *client* is not given. Defaults to :class:`ApiClient`.

    Example::

        with Provider(resolve_config()) as provider:
            lists = provider.get("lists")
            tasks = provider.get("tasks", {"list_id": lists[0]["id"]})
    """

    def __init__(
        self,
        config: ProviderConfig,
        cache: Optional[ResponseCache] = None,
        token_file: Optional[TokenFile] = None,
        client: Optional[ApiClient] = None,
        client_factory: Optional[Callable[[ProviderConfig], ApiClient]] = None,
    ) -> None:
        self._config = config
        self._owns_cache = cache is None
        self._cache = cache or ResponseCache(
            config.cache.directory or get_cache_dir(), self.namespace, config.cache
        )
        self._token_file = token_file or TokenFile(get_token_dir(config), self.namespace)
        self._owns_client = client is None
        self._client = client or (client_factory or ApiClient)(config)
        self._token: Optional[str] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Provider:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP client and cache handles this provider created."""
        if self._owns_client:
            self._client.close()
        if self._owns_cache:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def namespace(self) -> str:
        """Identifier-safe type id scoping the cache and the token file."""
        cls = type(self)
        return sanitize(f"{cls.__module__}_{cls.__qualname__}".replace(".", "_"))

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def token_file(self) -> TokenFile:
        return self._token_file

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def get(self, action: str, params: Optional[Mapping[str, Scalar]] = None) -> Body:
        """Return the parsed body for ``GET {endpoint}/{action}?{params}``.

        A cached body is returned without touching the network or the
        token. Otherwise the request is sent with a resolved token; a 401
        invalidates the token and the request is retried exactly once.

        Args:
            action: API path segment such as ``"lists"`` or ``"tasks"``.
            params: Query parameters with scalar values.

        Returns:
            The decoded JSON object or array.

        Raises:
            InvalidUsageError: *action* is empty, absolute or escapes the
                endpoint, or a param is not a scalar.
            NoToken: No credential source produced a token.
            LoginFailure: The login exchange failed.
            AuthFailure: The API answered 401 again after the retry.
            InvalidResponse: The status is outside ``[200, 399]``.
            EmptyData: The body is empty or not a JSON object/array.
            ConnectionError_: The transport failed.
        """
        action = action.strip("/") if action else ""
        if not action:
            raise InvalidUsageError("An API action is required")
        _check_action(action)
        query = {str(k): _query_value(str(k), v) for k, v in (params or {}).items()}

        key = make_key(self.namespace, action, query)
        cached = self._load_cached(key)
        if cached is not None:
            logger.debug("Cache hit for %s", action)
            return cached

        logger.debug("Cache miss for %s, requesting", action)
        call = _Call(action)
        try:
            body = self._fetch(call, query)
        except Exception:
            call.advance(CallState.FATAL)
            raise
        call.advance(CallState.SUCCESS)

        self._cache.save(json.dumps(body), key, self._config.cache.ttl_seconds)
        return body

    def clean_cache(self) -> None:
        """Clear every cached response under this provider's namespace."""
        self._cache.clean()

    def flush(self) -> None:
        """Handle an external "flush all caches" signal."""
        logger.debug("Flushing %s response cache", self.namespace)
        self.clean_cache()

    # ------------------------------------------------------------------ #
    # Request pipeline
    # ------------------------------------------------------------------ #

    def _load_cached(self, key: str) -> Optional[Body]:
        raw = self._cache.load(key)
        if not raw:
            return None
        try:
            body = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            self._cache.delete(key)
            return None
        return body or None

    def _fetch(self, call: _Call, query: dict[str, str]) -> Body:
        response = self._send(call, query)

        if response.status_code == 401:
            call.advance(CallState.UNAUTHORIZED)
            logger.debug("Token rejected for %s, refreshing and retrying once", call.action)
            self._invalidate_token()
            call.advance(CallState.RETRYING_ONCE)
            response = self._send(call, query)
            if response.status_code == 401:
                raise AuthFailure(
                    "Response could not be obtained due to an invalid token. "
                    "Please check your credentials and action."
                )

        if not _is_ok(response.status_code):
            raise InvalidResponse(
                f"Invalid response received (HTTP {response.status_code}) for "
                f"'{call.action}'. Please check your credentials and action.",
                status_code=response.status_code,
            )
        return self._parse(response)

    def _send(self, call: _Call, query: dict[str, str]) -> httpx.Response:
        headers = {TOKEN_HEADER: self._resolve_token(call)}
        if self._config.credentials.client_id:
            headers[CLIENT_ID_HEADER] = self._config.credentials.client_id
        if call.state is CallState.FRESH:
            call.advance(CallState.REQUESTED)
        return self._client.get(call.action, params=query, headers=headers)

    def _parse(self, response: httpx.Response) -> Body:
        body = _decode(response)
        if not body or not isinstance(body, (dict, list)):
            raise EmptyData(
                f"Data not received from {self._config.endpoint}. "
                "Please check your credentials."
            )
        return body

    # ------------------------------------------------------------------ #
    # Token handling
    # ------------------------------------------------------------------ #

    def _invalidate_token(self) -> None:
        with self._lock:
            self._token = None
            self._token_file.clear()

    def _resolve_token(self, call: _Call) -> str:
        """Find a usable token: memory, config, token file, then login.

        After a 401 in this call the in-memory and configured tokens are
        skipped, leaving the token file (already removed) and a fresh
        login.
        """
        with self._lock:
            if self._token and not call.token_invalid:
                return self._token

            credentials = self._config.credentials
            token = None if call.token_invalid else credentials.token
            source = "config"

            if not token:
                token = self._token_file.load()
                source = "token file"

            if not token and credentials.can_login:
                token = self._login()
                source = "login"

            if not token:
                raise NoToken("No token could be retrieved. Please check your credentials.")

            logger.debug("Using token from %s", source)
            self._token = token
            return token

    def _login(self) -> str:
        """Exchange email/password for a token and persist it."""
        credentials = self._config.credentials
        logger.debug("Logging in to %s as %s", self._config.endpoint, credentials.email)
        response = self._client.post(
            LOGIN_ACTION,
            json_body={"email": credentials.email, "password": credentials.password},
        )

        if not _is_ok(response.status_code):
            raise LoginFailure(
                f"Login rejected by {self._config.endpoint} "
                f"(HTTP {response.status_code}). Please check your credentials.",
                reason="status",
                status_code=response.status_code,
            )

        body = _decode(response)
        if not body:
            raise LoginFailure(
                f"Data not received from {self._config.endpoint}. "
                "Please check your credentials.",
                reason="empty",
                status_code=response.status_code,
            )

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise LoginFailure(
                f"No token received from {self._config.endpoint}. "
                "Please check your credentials.",
                reason="missing_token",
                status_code=response.status_code,
            )

        token = str(token)
        self._token_file.save(token)
        return token


def flush_all(providers: Iterable[Provider]) -> None:
    """Flush the response cache of every provider in *providers*."""
    for provider in providers:
        provider.flush()
