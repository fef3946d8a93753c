"""Pytest configuration - loads .env for the live suite and fakes the HTTP layer for unit tests."""

import io
import json
import urllib.error
import urllib.request
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from smapi_cli.core import polling

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


# =============================================================================
# Fake HTTP layer
# =============================================================================


@dataclass
class SentRequest:
    """A request captured by the fake transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any = None


@dataclass
class FakeResponse:
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    raw: bytes = b""

    def read(self) -> bytes:
        return self.raw

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


def _encode(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    return json.dumps(body).encode("utf-8")


class FakeTransport:
    """Stands in for urllib.request.urlopen; replies from a queue and records requests."""

    def __init__(self) -> None:
        self.requests: list[SentRequest] = []
        self._replies: deque = deque()

    def reply(self, status: int = 200, body: Any = None, headers: dict[str, str] | None = None) -> "FakeTransport":
        self._replies.append(FakeResponse(status=status, headers=headers or {}, raw=_encode(body)))
        return self

    def fail(self, status: int, body: Any = None, reason: str = "Error") -> "FakeTransport":
        self._replies.append((status, reason, _encode(body)))
        return self

    def raise_error(self, error: Exception) -> "FakeTransport":
        self._replies.append(error)
        return self

    @property
    def last(self) -> SentRequest:
        return self.requests[-1]

    def __call__(self, req: urllib.request.Request, timeout: float | None = None) -> FakeResponse:
        body = json.loads(req.data.decode("utf-8")) if req.data else None
        self.requests.append(
            SentRequest(
                method=req.get_method(),
                url=req.full_url,
                headers={k.lower(): v for k, v in req.header_items()},
                body=body,
            )
        )
        reply = self._replies.popleft() if self._replies else FakeResponse()
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, tuple):
            status, reason, raw = reply
            raise urllib.error.HTTPError(req.full_url, status, reason, {}, io.BytesIO(raw))
        return reply


@pytest.fixture
def transport(monkeypatch):
    """Replace urlopen with a recording fake."""
    fake = FakeTransport()
    monkeypatch.setattr(urllib.request, "urlopen", fake)
    return fake


@pytest.fixture
def sleeps(monkeypatch):
    """Record poller sleeps instead of sleeping."""
    recorded: list[float] = []
    monkeypatch.setattr(polling.time, "sleep", recorded.append)
    return recorded
