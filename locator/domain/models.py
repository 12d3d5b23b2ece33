"""Pydantic models shared across the search and ranking layers."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DistanceUnit(str, Enum):
    MILES = "miles"
    KILOMETERS = "km"

    @property
    def earth_radius(self) -> float:
        return 3959.0 if self is DistanceUnit.MILES else 6371.0

    @property
    def label(self) -> str:
        return "mi" if self is DistanceUnit.MILES else "km"


class Coordinate(BaseModel):
    """A finite latitude/longitude pair; out-of-range values fail validation."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class ServiceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    category: str = ""
    address: str = ""
    location: Coordinate

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_coordinates(cls, data: Any) -> Any:
        # Catalog files may carry lat/lon at the top level of each record.
        if isinstance(data, dict) and "location" not in data and "lat" in data and "lon" in data:
            data = dict(data)
            data["location"] = {"lat": data.pop("lat"), "lon": data.pop("lon")}
        return data


class RankedService(ServiceRecord):
    distance: float = Field(ge=0)
    unit: DistanceUnit


class GeocodeQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_input: str
    normalized_input: str

    @classmethod
    def from_raw(cls, raw_input: str) -> "GeocodeQuery":
        return cls(raw_input=raw_input, normalized_input=" ".join(raw_input.split()))


__all__ = [
    "Coordinate",
    "DistanceUnit",
    "GeocodeQuery",
    "RankedService",
    "ServiceRecord",
]
