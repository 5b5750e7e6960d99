from __future__ import annotations

from dataclasses import dataclass
import time

from .errors import AccountError


@dataclass(frozen=True, slots=True)
class Deadline:
    """Point on the monotonic clock after which an operation must give up."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self) -> None:
        """Raise an internal error once the budget is spent."""
        if self.expired():
            raise AccountError.internal("request deadline exceeded")
