"""
Status messages - Transient user-visible operation outcomes.

Only the most recent message is visible. A message disappears once its
time-to-live has elapsed since it was posted; posting a newer message
replaces it and starts a fresh interval. Expiry is evaluated lazily
against an injectable monotonic clock.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

DEFAULT_TTL_SECONDS = 5.0


class MessageKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusMessage:
    text: str
    kind: MessageKind
    posted_at: float


class StatusMessages:
    """Holds the latest status message for one dashboard session."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._latest: StatusMessage | None = None

    def show(self, text: str, kind: MessageKind) -> StatusMessage:
        self._latest = StatusMessage(text=text, kind=kind, posted_at=self._clock())
        return self._latest

    def success(self, text: str) -> StatusMessage:
        return self.show(text, MessageKind.SUCCESS)

    def error(self, text: str) -> StatusMessage:
        return self.show(text, MessageKind.ERROR)

    @property
    def current(self) -> StatusMessage | None:
        """The visible message, or None once it has expired."""
        latest = self._latest
        if latest is None:
            return None
        if self._clock() - latest.posted_at >= self._ttl:
            self._latest = None
            return None
        return latest

    def clear(self) -> None:
        self._latest = None
