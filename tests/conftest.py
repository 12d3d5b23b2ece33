"""Shared pytest fixtures for the locator test-suite."""

from __future__ import annotations

from typing import Any

import pytest
import structlog

from locator.domain.models import Coordinate, ServiceRecord
from locator.services.catalog import ServiceCatalog


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingRenderer:
    def __init__(self) -> None:
        self.outcomes: list[Any] = []
        self.rankings: list[tuple[Any, list[Any], bool]] = []

    def on_outcome(self, outcome) -> None:
        self.outcomes.append(outcome)

    def on_ranked(self, found, ranked, *, in_service_area: bool) -> None:
        self.rankings.append((found, list(ranked), in_service_area))


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def catalog() -> ServiceCatalog:
    return ServiceCatalog.default()


@pytest.fixture
def small_catalog() -> ServiceCatalog:
    return ServiceCatalog(
        [
            ServiceRecord(id=1, name="Far", location=Coordinate(lat=41.5, lon=-74.0)),
            ServiceRecord(id=2, name="Near", location=Coordinate(lat=40.72, lon=-74.0)),
            ServiceRecord(id=3, name="Middle", location=Coordinate(lat=40.9, lon=-74.0)),
        ]
    )
