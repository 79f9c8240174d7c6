import asyncio
import socket
from typing import Callable
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
import pytest

from latchkey.config import OAuthSettings

QueryBuilder = Callable[[dict[str, str]], "dict[str, str] | None"]


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_settings(**overrides) -> OAuthSettings:
    values = {
        "client_id": "abc",
        "client_secret": "shh",
        "redirect_uri": f"http://127.0.0.1:{free_port()}/callback",
        "scope": "read_write",
        "authorization_endpoint": "https://auth.example.com/authorize",
        "token_endpoint": "https://auth.example.com/token",
        "callback_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return OAuthSettings(**values)


def token_http_response(status_code: int, body: dict | None = None) -> MagicMock:
    """Mock httpx.Response the token endpoint answers with."""
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("not json")
        response.text = "<html>Bad Gateway</html>"
    else:
        response.json.return_value = body
        response.text = str(body)
    return response


def echo_state(code: str = "auth-code-123") -> QueryBuilder:
    """Provider that approves: sends the code back with the issued state."""

    def build(params: dict[str, str]) -> dict[str, str]:
        return {"code": code, "state": params["state"]}

    return build


class FakeBrowserLauncher:
    """Plays the browser and provider: redirects straight to the listener.

    ``build_query`` receives the authorization URL's query parameters and
    returns the callback query to deliver, or None to never call back.
    """

    def __init__(self, build_query: QueryBuilder | None = None):
        self.build_query = build_query or echo_state()
        self.opened_urls: list[str] = []
        self.responses: list[httpx.Response] = []
        self.tasks: list[asyncio.Task] = []

    @property
    def opened_params(self) -> dict[str, str]:
        query = parse_qs(urlparse(self.opened_urls[-1]).query)
        return {key: values[0] for key, values in query.items()}

    def open(self, url: str) -> None:
        self.opened_urls.append(url)
        query = self.build_query(self.opened_params)
        if query is None:
            return

        redirect_uri = self.opened_params["redirect_uri"]
        callback_url = f"{redirect_uri}?{urlencode(query)}"
        self.tasks.append(asyncio.get_running_loop().create_task(self._deliver(callback_url)))

    async def _deliver(self, callback_url: str) -> None:
        async with httpx.AsyncClient(trust_env=False, timeout=5.0) as client:
            self.responses.append(await client.get(callback_url))

    async def delivered(self) -> list[httpx.Response]:
        await asyncio.gather(*self.tasks)
        return self.responses


@pytest.fixture
def settings() -> OAuthSettings:
    return make_settings()
