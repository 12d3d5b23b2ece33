"""Nearest-service ranking by great-circle distance."""

from __future__ import annotations

from typing import Iterable

from locator.domain.models import Coordinate, DistanceUnit, RankedService, ServiceRecord
from locator.services.distance import distance

DEFAULT_RESULT_LIMIT = 5


def rank(
    origin: Coordinate,
    catalog: Iterable[ServiceRecord],
    k: int = DEFAULT_RESULT_LIMIT,
    unit: DistanceUnit = DistanceUnit.MILES,
) -> list[RankedService]:
    """Return the ``k`` records closest to ``origin``, nearest first.

    Records at equal distance keep their catalog order.
    """

    if k < 0:
        raise ValueError("k must not be negative")
    unit = DistanceUnit(unit)
    measured = [(distance(origin, record.location, unit), record) for record in catalog]
    measured.sort(key=lambda item: item[0])
    return [
        RankedService(**record.model_dump(), distance=value, unit=unit)
        for value, record in measured[:k]
    ]


def is_in_service_area(
    location: Coordinate,
    center: Coordinate,
    radius: float,
    unit: DistanceUnit = DistanceUnit.MILES,
) -> bool:
    return distance(location, center, unit) <= radius


__all__ = ["DEFAULT_RESULT_LIMIT", "is_in_service_area", "rank"]
