"""Synchronous HTTP client for the task-management API.

This module provides :class:`ApiClient`, a thin wrapper around
:class:`httpx.Client` configured from a
:class:`~wunderbox.models.ProviderConfig`:

- **Base URL** -- every path is resolved against the configured endpoint.
- **Explicit timeouts** -- taken from
  :attr:`~wunderbox.models.RequestConfig.timeout`.
- **Network error mapping** -- connection and timeout failures surface as
  :class:`~wunderbox.exceptions.ConnectionError_`.

HTTP status codes are *not* mapped to exceptions here. The provider owns
status handling because a 401 means "refresh the token and retry once",
not "fail".
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from wunderbox.exceptions import ConnectionError_
from wunderbox.models import ProviderConfig


class ApiClient:
    """Blocking HTTP client bound to one API endpoint.

    Can be used as a context manager; the underlying transport is opened
    lazily on the first request and released by :meth:`close`.

    Args:
        config: Provider configuration (``endpoint`` and ``request``
            settings are used).
        transport: Optional custom :mod:`httpx` transport, mainly
            :class:`httpx.MockTransport` in tests.

    Example::

        with ApiClient(config) as client:
            response = client.get("lists", headers={"X-Access-Token": token})
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ApiClient:
        self._ensure_client()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            request = self._config.request
            self._client = httpx.Client(
                base_url=self._config.endpoint,
                timeout=request.timeout,
                verify=request.verify_ssl,
                follow_redirects=True,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a GET request to ``{endpoint}/{path}``.

        Args:
            path: Path relative to the endpoint.
            params: Query parameters; omitted from the URL when empty.
            headers: Extra request headers.

        Raises:
            ConnectionError_: On network or timeout errors.
        """
        return self._send("GET", path, params=dict(params) if params else None, headers=headers)

    def post(
        self,
        path: str,
        json_body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a POST request with a JSON body.

        Raises:
            ConnectionError_: On network or timeout errors.
        """
        return self._send("POST", path, json=json_body, headers=headers)

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        try:
            return client.request(method, path, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
            raise ConnectionError_(
                f"{method} {self._config.endpoint}{path} failed: {exc}"
            ) from exc
