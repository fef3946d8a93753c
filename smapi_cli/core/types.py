"""
Core types shared by the transport, the dispatcher and the poller.

These dataclasses keep raw responses, status rules and polling outcomes
explicit instead of passing loose dicts around.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =============================================================================
# Transport Types
# =============================================================================


@dataclass
class RawResponse:
    """A successful HTTP response before normalization."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


# =============================================================================
# Polling Types
# =============================================================================


class PollState(str, Enum):
    """State of an asynchronous server-side operation as seen by a poller."""

    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PollTarget:
    """What is being waited on, and which status values end the wait."""

    name: str
    status_path: tuple[str | int, ...]
    ready: frozenset[str]
    failed: frozenset[str] = frozenset()

    def status_of(self, response: Any) -> str | None:
        """Walk ``status_path`` through a response; missing segments yield None."""
        node = response
        for segment in self.status_path:
            if isinstance(segment, int):
                if not isinstance(node, list) or not -len(node) <= segment < len(node):
                    return None
                node = node[segment]
            else:
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
        return node if isinstance(node, str) else None

    def classify(self, status: str | None) -> PollState:
        """Map a status value onto the poll state machine."""
        if status in self.ready:
            return PollState.READY
        if status in self.failed:
            return PollState.FAILED
        return PollState.PENDING


@dataclass
class PollOutcome:
    """Result of a polling or retry loop.

    Exhausting the attempt budget leaves ``state`` at PENDING; it is never
    turned into an exception.
    """

    state: PollState
    response: Any = None
    error: Any = None
    attempts: int = 0
    status: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.state is PollState.READY

    @property
    def is_failed(self) -> bool:
        return self.state is PollState.FAILED

    @property
    def is_exhausted(self) -> bool:
        """True when the attempt budget ran out before a terminal state."""
        return self.state is PollState.PENDING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {
            "state": self.state.value,
            "attempts": self.attempts,
        }
        if self.status is not None:
            result["status"] = self.status
        if self.response is not None:
            result["response"] = self.response
        if self.error is not None:
            result["error"] = self.error.summary()
        return result
