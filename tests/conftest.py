"""Shared test fixtures for wunderbox.

Provides isolated config/cache/token directories, a recording fake of the
Wunderlist API built on :class:`httpx.MockTransport`, and a provider wired
to both. Nothing here touches the network or the real user directories.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from wunderbox.cache import ResponseCache
from wunderbox.client import ApiClient
from wunderbox.models import CacheConfig, Credentials, ProviderConfig
from wunderbox.output import reset_output
from wunderbox.provider import Provider
from wunderbox.token_store import TokenFile

ENDPOINT = "https://a.wunderlist.com/api/v1/"

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager caches sys.stdout/sys.stderr at creation time; CliRunner
    swaps those streams, so a stale manager would write to closed files.
    """
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG dirs and TMPDIR at tmp_path and clear credential env vars."""
    monkeypatch.setattr("wunderbox.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for prefix in ("INFOBOXES_WUNDERLIST_", "WUNDERLIST_"):
        for key in ("CLIENT_ID", "TOKEN", "EMAIL", "PASSWORD"):
            monkeypatch.delenv(prefix + key, raising=False)
    monkeypatch.delenv("WUNDERBOX_ENDPOINT", raising=False)
    monkeypatch.delenv("WUNDERBOX_CACHE_LIFETIME", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class FakeApi:
    """Scripted stand-in for the remote API.

    Replies are queued per ``(method, path)``; the last reply for a route is
    repeated once the queue runs dry. Every request is recorded.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Reply]] = {}

    def reply(self, method: str, action: str, *replies: Reply) -> None:
        self._routes.setdefault((method, action), []).extend(replies)

    def json(self, method: str, action: str, data: Any, status_code: int = 200) -> None:
        self.reply(method, action, httpx.Response(status_code, json=data))

    def status(self, method: str, action: str, status_code: int) -> None:
        self.reply(method, action, httpx.Response(status_code, json={"error": "nope"}))

    def calls(self, method: Optional[str] = None, action: Optional[str] = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (action is None or r.url.path.endswith("/" + action))
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = request.url.path.split("/api/v1/", 1)[-1]
        queue = self._routes.get((request.method, action))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        return httpx.Response(
            reply.status_code, headers=reply.headers, content=reply.content
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def login_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_provider(tmp_path: Path, api: FakeApi):
    """Factory building a Provider over the fake API with tmp-dir storage.

    Providers created through the factory share one cache and one token
    directory so tests can observe persistence across instances.
    """
    created: list[Provider] = []
    clients: list[ApiClient] = []

    def _make(
        token: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        client_id: Optional[str] = "client-1",
        cache_enabled: bool = True,
        lifetime_hours: float = 1,
    ) -> Provider:
        config = ProviderConfig(
            endpoint=ENDPOINT,
            credentials=Credentials(
                client_id=client_id, token=token, email=email, password=password
            ),
            cache=CacheConfig(
                enabled=cache_enabled,
                lifetime_hours=lifetime_hours,
                directory=tmp_path / "cache",
            ),
            token_dir=tmp_path / "tokens",
        )
        client = ApiClient(config, transport=api.transport())
        clients.append(client)
        provider = Provider(config, client=client)
        created.append(provider)
        return provider

    yield _make
    for provider in created:
        provider.close()
    # injected clients are not owned by their provider
    for client in clients:
        client.close()


@pytest.fixture
def token_file(tmp_path: Path) -> TokenFile:
    """The token file the providers from ``make_provider`` use."""
    return TokenFile(tmp_path / "tokens", "wunderbox_provider_Provider")


@pytest.fixture
def response_cache(tmp_path: Path) -> ResponseCache:
    cache = ResponseCache(tmp_path / "rc", "test_ns", CacheConfig(lifetime_hours=1))
    yield cache
    cache.close()
