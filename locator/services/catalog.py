"""Service catalog loading with a built-in fallback set."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from locator.domain.models import ServiceRecord
from locator.logging import logger
from locator.services.exceptions import CatalogLoadError
from locator.utils.retry import retry_async

CATALOG_FETCH_MAX_ATTEMPTS = 3
CATALOG_FETCH_BASE_DELAY = 0.5

_RECORDS_ADAPTER = TypeAdapter(list[ServiceRecord])

DEFAULT_SERVICES: tuple[dict[str, Any], ...] = (
    {"id": 1, "name": "Manhattan HVAC Center", "lat": 40.7589, "lon": -73.9851, "category": "HVAC Service", "address": "123 Broadway, NY 10001"},
    {"id": 2, "name": "Brooklyn Air Solutions", "lat": 40.6782, "lon": -73.9442, "category": "Air Conditioning", "address": "456 Atlantic Ave, Brooklyn 11217"},
    {"id": 3, "name": "Queens Heating & Cooling", "lat": 40.7282, "lon": -73.7949, "category": "Heating Service", "address": "789 Northern Blvd, Queens 11372"},
    {"id": 4, "name": "Bronx Climate Control", "lat": 40.8448, "lon": -73.8648, "category": "HVAC Repair", "address": "321 Grand Concourse, Bronx 10451"},
    {"id": 5, "name": "Staten Island Air Care", "lat": 40.5795, "lon": -74.1502, "category": "Air Quality", "address": "654 Richmond Ave, Staten Island 10314"},
    {"id": 6, "name": "Midtown Mechanical", "lat": 40.7505, "lon": -73.9934, "category": "Commercial HVAC", "address": "Times Square, NY 10036"},
    {"id": 7, "name": "Upper East Side Climate", "lat": 40.7736, "lon": -73.9566, "category": "Residential Service", "address": "1234 Lexington Ave, NY 10028"},
    {"id": 8, "name": "Chelsea Heating Pros", "lat": 40.7465, "lon": -74.0014, "category": "Boiler Service", "address": "567 W 23rd St, NY 10011"},
    {"id": 9, "name": "Financial District AC", "lat": 40.7074, "lon": -74.0113, "category": "Emergency Repair", "address": "89 Wall Street, NY 10005"},
    {"id": 10, "name": "Harlem Heat Solutions", "lat": 40.8176, "lon": -73.9482, "category": "Installation", "address": "2468 Malcolm X Blvd, NY 10027"},
    {"id": 11, "name": "Long Island City HVAC", "lat": 40.7505, "lon": -73.9425, "category": "Maintenance", "address": "11-11 44th Ave, LIC 11101"},
    {"id": 12, "name": "Williamsburg Air Tech", "lat": 40.7081, "lon": -73.9571, "category": "Ductwork", "address": "200 Grand St, Brooklyn 11249"},
    {"id": 13, "name": "Park Slope Climate Care", "lat": 40.6723, "lon": -73.9774, "category": "Energy Efficiency", "address": "78 7th Ave, Brooklyn 11217"},
    {"id": 14, "name": "Astoria Heating Hub", "lat": 40.7698, "lon": -73.9442, "category": "Thermostat Service", "address": "31-31 31st St, Astoria 11106"},
    {"id": 15, "name": "Battery Park Air Systems", "lat": 40.7033, "lon": -74.0170, "category": "Indoor Air Quality", "address": "1 Battery Park Plaza, NY 10004"},
)


class ServiceCatalog:
    """Read-only, ordered collection of service records."""

    def __init__(self, records: Iterable[ServiceRecord] = (), *, is_fallback: bool = False) -> None:
        self._records: tuple[ServiceRecord, ...] = tuple(records)
        self.is_fallback = is_fallback

    @classmethod
    def from_payload(cls, payload: Any) -> "ServiceCatalog":
        """Build a catalog from a decoded JSON document.

        Accepts a bare list of records or an object with a ``services`` list.
        """

        if isinstance(payload, dict):
            payload = payload.get("services")
        if not isinstance(payload, list):
            raise CatalogLoadError("Catalog document must be a list of services.")
        try:
            records = _RECORDS_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise CatalogLoadError(f"Invalid service record: {exc.errors()[0]['msg']}") from exc

        seen: set[int] = set()
        for record in records:
            if record.id in seen:
                raise CatalogLoadError(f"Duplicate service id {record.id}.")
            seen.add(record.id)
        return cls(records)

    @classmethod
    def load(cls, source: str | Path) -> "ServiceCatalog":
        """Load a catalog from a local JSON file."""

        path = Path(source)
        try:
            with path.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except OSError as exc:
            raise CatalogLoadError(f"Cannot read catalog {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CatalogLoadError(f"Catalog {path} is not valid JSON: {exc}") from exc
        return cls.from_payload(payload)

    @classmethod
    async def fetch(
        cls,
        client: httpx.AsyncClient,
        url: str,
        *,
        timeout: float = 10,
    ) -> "ServiceCatalog":
        """Load a catalog from an http(s) URL, retrying transient failures."""

        async def _request():
            response = await client.get(url, timeout=timeout)
            response.raise_for_status()
            return response

        try:
            response = await retry_async(
                _request,
                max_attempts=CATALOG_FETCH_MAX_ATTEMPTS,
                base_delay=CATALOG_FETCH_BASE_DELAY,
                retry_on=(httpx.RequestError,),
                logger=logger,
                operation_name="catalog_fetch",
            )
        except httpx.HTTPStatusError as exc:
            raise CatalogLoadError(
                f"Catalog request failed ({exc.response.status_code}): {url}"
            ) from exc
        except httpx.RequestError as exc:
            raise CatalogLoadError(f"Catalog request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogLoadError(f"Catalog at {url} is not valid JSON.") from exc
        return cls.from_payload(payload)

    @classmethod
    def default(cls) -> "ServiceCatalog":
        return cls(_RECORDS_ADAPTER.validate_python(list(DEFAULT_SERVICES)), is_fallback=True)

    def all(self) -> Sequence[ServiceRecord]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ServiceRecord]:
        return iter(self._records)


async def load_catalog_or_default(
    source: str | Path | None,
    *,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 10,
) -> ServiceCatalog:
    """Load the configured catalog, degrading to the built-in set on failure."""

    if source is None:
        return ServiceCatalog.default()

    source_text = str(source)
    try:
        if source_text.startswith(("http://", "https://")):
            if http_client is None:
                raise CatalogLoadError("An HTTP client is required for remote catalogs.")
            catalog = await ServiceCatalog.fetch(http_client, source_text, timeout=timeout)
        else:
            catalog = ServiceCatalog.load(source_text)
    except CatalogLoadError as exc:
        logger.warning("catalog_load_failed", source=source_text, error=str(exc))
        fallback = ServiceCatalog.default()
        logger.info("catalog_fallback_used", records=len(fallback))
        return fallback

    logger.info("catalog_loaded", source=source_text, records=len(catalog))
    return catalog


__all__ = [
    "DEFAULT_SERVICES",
    "ServiceCatalog",
    "load_catalog_or_default",
]
