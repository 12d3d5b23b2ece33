"""Runtime configuration based on environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from locator.domain.models import Coordinate, DistanceUnit


class SearchSettings(BaseModel):
    rate_limit_interval_ms: int = Field(default=1000, ge=0)
    debounce_delay_ms: int = Field(default=1500, ge=0)
    min_auto_search_length: int = Field(
        default=3,
        ge=0,
        description="Typed input shorter than this never triggers a debounced search.",
    )


class GeocoderSettings(BaseModel):
    base_url: AnyHttpUrl = Field(default="https://nominatim.openstreetmap.org/search")
    lookup_timeout_ms: int = Field(default=8000, ge=1, le=60_000)
    country_codes: str = "us"
    query_suffix: str = "United States"
    candidate_limit: int = Field(default=5, ge=1, le=50)
    address_details: bool = True
    user_agent: str = Field(
        default="ServiceAreaLocator/1.0 (contact@example.com)",
        min_length=1,
        description="Nominatim's usage policy requires an identifying User-Agent.",
    )


class ServiceAreaSettings(BaseModel):
    center: Coordinate = Field(default_factory=lambda: Coordinate(lat=40.7128, lon=-74.0060))
    radius: float = Field(default=50.0, gt=0, description="Expressed in the ranking distance unit.")


class RankingSettings(BaseModel):
    result_limit: int = Field(default=5, ge=1)
    distance_unit: DistanceUnit = DistanceUnit.MILES
    service_area: ServiceAreaSettings = Field(default_factory=ServiceAreaSettings)


class CatalogSettings(BaseModel):
    source: str | None = Field(
        default=None,
        description="Path or http(s) URL of a JSON service catalog; built-in set when unset.",
    )
    request_timeout_seconds: int = Field(default=10, ge=1, le=60)

    @field_validator("source", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class LocatorSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOCATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__"
    )

    environment: Literal["dev", "staging", "prod"] = "dev"
    default_language: str = "en"
    renderer: Literal["text", "json"] = "text"

    search: SearchSettings = Field(default_factory=SearchSettings)
    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)


@lru_cache
def get_settings() -> LocatorSettings:
    """Return cached settings instance."""

    return LocatorSettings()


__all__ = [
    "CatalogSettings",
    "GeocoderSettings",
    "LocatorSettings",
    "RankingSettings",
    "SearchSettings",
    "ServiceAreaSettings",
    "get_settings",
]
