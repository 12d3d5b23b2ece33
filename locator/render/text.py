"""Human-readable console output."""

from __future__ import annotations

import math
import sys
from typing import Sequence, TextIO

from locator.domain.models import RankedService
from locator.domain.outcomes import (
    Found,
    InvalidInput,
    NotFound,
    RateLimited,
    SearchOutcome,
    TimedOut,
    TransportError,
)
from locator.i18n import MessageCatalog


class TextRenderer:
    def __init__(
        self,
        stream: TextIO | None = None,
        messages: MessageCatalog | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        self._messages = messages or MessageCatalog()

    def on_outcome(self, outcome: SearchOutcome) -> None:
        self._write(self.describe(outcome))

    def on_ranked(
        self,
        found: Found,
        ranked: Sequence[RankedService],
        *,
        in_service_area: bool,
    ) -> None:
        if not in_service_area:
            self._write(self._t("ranked.outside_area", address=found.display_name))
            return
        if not ranked:
            self._write(self._t("ranked.empty"))
            return
        lines = [self._t("ranked.header", name=found.short_name)]
        for service in ranked:
            lines.append(
                "  "
                + self._t(
                    "ranked.item",
                    name=service.name,
                    category=service.category,
                    address=service.address,
                    distance=service.distance,
                    unit=service.unit.label,
                )
            )
        self._write("\n".join(lines))

    def describe(self, outcome: SearchOutcome) -> str:
        if isinstance(outcome, Found):
            return self._t("outcome.found", name=outcome.short_name, address=outcome.display_name)
        if isinstance(outcome, NotFound):
            return self._t("outcome.not_found", query=outcome.query)
        if isinstance(outcome, InvalidInput):
            return self._t(f"outcome.invalid_input.{outcome.reason}")
        if isinstance(outcome, RateLimited):
            if outcome.from_provider:
                return self._t("outcome.provider_rate_limited")
            seconds = max(1, math.ceil(outcome.retry_after_ms / 1000))
            return self._t("outcome.rate_limited", seconds=seconds)
        if isinstance(outcome, TimedOut):
            return self._t("outcome.timed_out")
        if isinstance(outcome, TransportError):
            return self._t("outcome.transport_error")
        raise TypeError(f"Unsupported outcome: {outcome!r}")

    def _t(self, key: str, **kwargs) -> str:
        return self._messages.format(key, **kwargs)

    def _write(self, text: str) -> None:
        self._stream.write(text + "\n")
        self._stream.flush()


__all__ = ["TextRenderer"]
