"""Machine-readable output, one JSON object per line."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict
from typing import Any, Sequence, TextIO

from locator.domain.models import RankedService
from locator.domain.outcomes import Found, SearchOutcome, outcome_kind


class JsonRenderer:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def on_outcome(self, outcome: SearchOutcome) -> None:
        self._emit({"event": "outcome", "kind": outcome_kind(outcome), **_outcome_fields(outcome)})

    def on_ranked(
        self,
        found: Found,
        ranked: Sequence[RankedService],
        *,
        in_service_area: bool,
    ) -> None:
        self._emit(
            {
                "event": "ranked",
                "location": found.location.model_dump(),
                "display_name": found.display_name,
                "in_service_area": in_service_area,
                "services": [service.model_dump(mode="json") for service in ranked],
            }
        )

    def _emit(self, payload: dict[str, Any]) -> None:
        self._stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._stream.flush()


def _outcome_fields(outcome: SearchOutcome) -> dict[str, Any]:
    if isinstance(outcome, Found):
        return {"location": outcome.location.model_dump(), "display_name": outcome.display_name}
    return asdict(outcome)


__all__ = ["JsonRenderer"]
