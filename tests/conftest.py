from __future__ import annotations

from typing import Callable, Optional, Union
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from m365_admin.__main__ import build_parser
from m365_admin.commands import CommandContext
from m365_admin.rest.client import RestClient
from m365_admin.safety.guardian import SafetyGuardian

SPO_URL = "https://contoso.sharepoint.com"
CACHE_SCOPE = "tenant-1:client-1:certificate"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeTenant:
    """Routes requests by method and URL fragment and records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, str, Responder]] = []

    def on(self, method: str, url_part: str, response: Responder) -> None:
        self._routes.append((method, url_part, response))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = unquote(str(request.url))
        for method, url_part, response in self._routes:
            if request.method == method and url_part in url:
                return response(request) if callable(response) else response
        return httpx.Response(400, text="Invalid request")

    def find(self, method: str, url_part: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and url_part in unquote(str(r.url))
        ]


class Prompt:
    """Stands in for input(); answers with a fixed reply and records questions."""

    def __init__(self, answer: str = "n"):
        self.answer = answer
        self.messages: list[str] = []

    def __call__(self, message: str) -> str:
        self.messages.append(message)
        return self.answer


async def fake_token(resource: str) -> str:
    return f"token:{resource}"


@pytest.fixture
def tenant() -> FakeTenant:
    return FakeTenant()


@pytest.fixture
def prompt() -> Prompt:
    return Prompt()


@pytest_asyncio.fixture
async def ctx(tenant, prompt):
    guardian = SafetyGuardian(prompt=prompt)
    transport = httpx.MockTransport(tenant.handle)
    async with RestClient(fake_token, guardian, transport=transport) as client:
        yield CommandContext(
            client=client,
            guardian=guardian,
            tenant_id="tenant-1",
            cache_scope=CACHE_SCOPE,
            spo_url=SPO_URL,
        )


@pytest.fixture
def parse() -> Callable[..., object]:
    parser = build_parser()

    def _parse(*argv: str, extra: Optional[list[str]] = None):
        return parser.parse_args(list(argv) + (extra or []))

    return _parse
