"""Presentation interface the search controller reports to."""

from __future__ import annotations

from typing import Protocol, Sequence

from locator.domain.models import RankedService
from locator.domain.outcomes import Found, SearchOutcome


class Renderer(Protocol):
    def on_outcome(self, outcome: SearchOutcome) -> None:
        ...

    def on_ranked(
        self,
        found: Found,
        ranked: Sequence[RankedService],
        *,
        in_service_area: bool,
    ) -> None:
        ...


__all__ = ["Renderer"]
