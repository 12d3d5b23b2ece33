"""Postal-code geocoding against a Nominatim-compatible search endpoint."""

from __future__ import annotations

import asyncio
import math
import re
from typing import Any

import httpx
from pydantic import ValidationError

from locator.config import GeocoderSettings
from locator.domain.models import Coordinate, GeocodeQuery
from locator.domain.outcomes import (
    Found,
    InvalidInput,
    NotFound,
    RateLimited,
    SearchOutcome,
    TimedOut,
    TransportError,
)
from locator.logging import logger

POSTAL_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")

# Provider throttling carries no usable wait hint unless Retry-After is sent.
PROVIDER_RETRY_AFTER_FALLBACK_MS = 1000
MAX_PROVIDER_RETRY_AFTER_MS = 24 * 60 * 60 * 1000


def validate_postal_code(query: GeocodeQuery) -> InvalidInput | None:
    """Return an ``InvalidInput`` outcome when the query cannot be looked up."""

    if not query.normalized_input:
        return InvalidInput("empty")
    if not POSTAL_CODE_PATTERN.match(query.normalized_input):
        return InvalidInput("invalid_postal_code")
    return None


class GeocodeClient:
    """Resolves a postal code to a coordinate with a single outbound request."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: GeocoderSettings | None = None,
    ) -> None:
        self._client = http_client
        self._settings = settings or GeocoderSettings()

    @property
    def default_timeout_ms(self) -> int:
        return self._settings.lookup_timeout_ms

    async def lookup(self, query: GeocodeQuery, timeout_ms: int | None = None) -> SearchOutcome:
        invalid = validate_postal_code(query)
        if invalid is not None:
            return invalid

        if timeout_ms is None:
            timeout_ms = self._settings.lookup_timeout_ms
        logger.info("geocode_lookup_started", query=query.normalized_input, timeout_ms=timeout_ms)
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await self._client.get(
                    str(self._settings.base_url),
                    params=self._params(query),
                    headers={"User-Agent": self._settings.user_agent},
                )
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("geocode_timeout", query=query.normalized_input, timeout_ms=timeout_ms)
            return TimedOut(timeout_ms=timeout_ms)
        except httpx.RequestError as exc:
            logger.warning("geocode_transport_error", query=query.normalized_input, error=str(exc))
            return TransportError(f"Geocoding request failed: {exc}")

        outcome = self._classify(query, response)
        logger.info(
            "geocode_lookup_finished",
            query=query.normalized_input,
            status_code=response.status_code,
            outcome=type(outcome).__name__,
        )
        return outcome

    def _params(self, query: GeocodeQuery) -> dict[str, Any]:
        text = query.normalized_input
        if self._settings.query_suffix:
            text = f"{text} {self._settings.query_suffix}"
        params: dict[str, Any] = {
            "format": "json",
            "q": text,
            "limit": self._settings.candidate_limit,
            "addressdetails": 1 if self._settings.address_details else 0,
        }
        if self._settings.country_codes:
            params["countrycodes"] = self._settings.country_codes
        return params

    def _classify(self, query: GeocodeQuery, response: httpx.Response) -> SearchOutcome:
        if response.status_code == 429:
            logger.warning("geocode_provider_rate_limited", query=query.normalized_input)
            return RateLimited(retry_after_ms=_retry_after_ms(response), from_provider=True)
        if not response.is_success:
            detail = response.text[:500]
            logger.warning(
                "geocode_transport_error",
                query=query.normalized_input,
                status_code=response.status_code,
                detail=detail,
            )
            return TransportError(
                f"Geocoding provider returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            candidates = response.json()
        except ValueError:
            return self._malformed(query, "Geocoding response is not valid JSON.")
        if not isinstance(candidates, list):
            return self._malformed(query, "Geocoding response is not a list of candidates.")
        if not candidates:
            return NotFound(query=query.normalized_input)

        first = candidates[0]
        if not isinstance(first, dict):
            return self._malformed(query, "Geocoding candidate is not an object.")
        try:
            location = Coordinate(lat=first.get("lat"), lon=first.get("lon"))
        except ValidationError as exc:
            return self._malformed(
                query, f"Geocoding candidate has invalid coordinates: {exc.errors()[0]['msg']}"
            )
        display_name = str(first.get("display_name") or query.normalized_input)
        return Found(location=location, display_name=display_name)

    @staticmethod
    def _malformed(query: GeocodeQuery, detail: str) -> TransportError:
        logger.warning("geocode_transport_error", query=query.normalized_input, detail=detail)
        return TransportError(detail)


def _retry_after_ms(response: httpx.Response) -> int:
    header = response.headers.get("Retry-After")
    if header is None:
        return PROVIDER_RETRY_AFTER_FALLBACK_MS
    try:
        seconds = float(header)
    except ValueError:
        # HTTP-date form; no wall-clock parsing for a wait hint.
        return PROVIDER_RETRY_AFTER_FALLBACK_MS
    if not math.isfinite(seconds) or seconds * 1000 > MAX_PROVIDER_RETRY_AFTER_MS:
        return PROVIDER_RETRY_AFTER_FALLBACK_MS
    return max(0, int(seconds * 1000))


__all__ = ["GeocodeClient", "POSTAL_CODE_PATTERN", "validate_postal_code"]
