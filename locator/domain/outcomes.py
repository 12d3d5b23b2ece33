"""Classified results of a search attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from locator.domain.models import Coordinate


@dataclass(frozen=True, slots=True)
class Found:
    location: Coordinate
    display_name: str

    @property
    def short_name(self) -> str:
        return self.display_name.split(",")[0].strip()


@dataclass(frozen=True, slots=True)
class NotFound:
    query: str = ""


@dataclass(frozen=True, slots=True)
class InvalidInput:
    reason: str


@dataclass(frozen=True, slots=True)
class RateLimited:
    retry_after_ms: int
    # True when the geocoding provider answered 429 rather than local throttling.
    from_provider: bool = False


@dataclass(frozen=True, slots=True)
class TimedOut:
    timeout_ms: int = 0


@dataclass(frozen=True, slots=True)
class TransportError:
    detail: str
    status_code: int | None = None


@dataclass(frozen=True, slots=True)
class Cancelled:
    """Returned to the caller of a superseded search; never rendered."""

    request_id: str


SearchOutcome = Union[Found, NotFound, InvalidInput, RateLimited, TimedOut, TransportError, Cancelled]


def outcome_kind(outcome: SearchOutcome) -> str:
    return {
        Found: "found",
        NotFound: "not_found",
        InvalidInput: "invalid_input",
        RateLimited: "rate_limited",
        TimedOut: "timed_out",
        TransportError: "transport_error",
        Cancelled: "cancelled",
    }[type(outcome)]


__all__ = [
    "Cancelled",
    "Found",
    "InvalidInput",
    "NotFound",
    "RateLimited",
    "SearchOutcome",
    "TimedOut",
    "TransportError",
    "outcome_kind",
]
