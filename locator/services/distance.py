"""Great-circle distance between coordinates."""

from __future__ import annotations

import math

from locator.domain.models import Coordinate, DistanceUnit


def distance(a: Coordinate, b: Coordinate, unit: DistanceUnit = DistanceUnit.MILES) -> float:
    """Haversine distance from ``a`` to ``b`` expressed in ``unit``."""

    unit = DistanceUnit(unit)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * unit.earth_radius * math.atan2(math.sqrt(h), math.sqrt(1 - h))


__all__ = ["distance"]
