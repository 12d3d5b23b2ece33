"""Search orchestration: throttling, debounce, supersession and ranking hand-off."""

from __future__ import annotations

import asyncio
import contextlib
import math
import time
from dataclasses import dataclass
from typing import Sequence
from uuid import uuid4

import structlog

from locator.config import RankingSettings, SearchSettings
from locator.domain.models import Coordinate, GeocodeQuery, RankedService
from locator.domain.outcomes import Cancelled, Found, RateLimited, SearchOutcome
from locator.logging import logger
from locator.render.base import Renderer
from locator.services.catalog import ServiceCatalog
from locator.services.geocoder import GeocodeClient, validate_postal_code
from locator.services.ranking import is_in_service_area, rank
from locator.utils.clock import Clock, monotonic_ms


@dataclass
class SearchSession:
    last_request_issued_at: float | None = None
    pending_request_id: str | None = None
    last_resolved_location: Coordinate | None = None
    last_display_name: str | None = None

    def reset(self) -> None:
        self.last_request_issued_at = None
        self.pending_request_id = None
        self.last_resolved_location = None
        self.last_display_name = None


class SearchController:
    """Turns user input into at most one in-flight geocode lookup.

    Outcomes are returned to the caller and, when a renderer is attached,
    pushed to it as well. A lookup that is superseded by a newer search never
    reaches the renderer; its caller gets ``Cancelled`` back instead.
    """

    def __init__(
        self,
        geocoder: GeocodeClient,
        catalog: ServiceCatalog,
        *,
        search_settings: SearchSettings | None = None,
        ranking_settings: RankingSettings | None = None,
        renderer: Renderer | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._geocoder = geocoder
        self._catalog = catalog
        self._search = search_settings or SearchSettings()
        self._ranking = ranking_settings or RankingSettings()
        self._renderer = renderer
        self._clock = clock
        self.session = SearchSession()
        self._lookup_task: asyncio.Task[SearchOutcome] | None = None
        self._debounce_task: asyncio.Task[SearchOutcome] | None = None

    async def submit(self, raw_input: str) -> SearchOutcome:
        query = GeocodeQuery.from_raw(raw_input)
        invalid = validate_postal_code(query)
        if invalid is not None:
            return self._emit(invalid)

        now = monotonic_ms(self._clock)
        retry_after_ms = self._retry_after_ms(now)
        if retry_after_ms > 0:
            logger.info("search_rate_limited", query=query.normalized_input, retry_after_ms=retry_after_ms)
            return self._emit(RateLimited(retry_after_ms=retry_after_ms))

        self._cancel_lookup()
        request_id = uuid4().hex
        self.session.last_request_issued_at = now
        self.session.pending_request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            task = asyncio.create_task(
                self._geocoder.lookup(query, self._geocoder.default_timeout_ms)
            )
        self._lookup_task = task
        try:
            outcome = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                self._clear_pending(request_id)
                raise
            logger.info("search_superseded", request_id=request_id)
            return Cancelled(request_id=request_id)

        if self.session.pending_request_id != request_id:
            logger.info("search_response_discarded", request_id=request_id)
            return Cancelled(request_id=request_id)
        self._clear_pending(request_id)

        if isinstance(outcome, Found):
            self.session.last_resolved_location = outcome.location
            self.session.last_display_name = outcome.display_name
        self._emit(outcome)
        if isinstance(outcome, Found):
            self._deliver_ranking(outcome)
        return outcome

    def schedule_debounced(
        self,
        raw_input: str,
        delay_ms: int | None = None,
    ) -> asyncio.Task[SearchOutcome] | None:
        """Restart the typing timer; only the latest call ends up submitting."""

        self._cancel_debounce()
        if len(raw_input.strip()) < self._search.min_auto_search_length:
            return None

        delay_ms = self._search.debounce_delay_ms if delay_ms is None else delay_ms
        logger.debug("search_debounce_scheduled", delay_ms=delay_ms)
        self._debounce_task = asyncio.create_task(self._submit_after(raw_input, delay_ms))
        return self._debounce_task

    def nearest(self, k: int | None = None) -> Sequence[RankedService]:
        location = self.session.last_resolved_location
        if location is None:
            return []
        return rank(
            location,
            self._catalog.all(),
            self._ranking.result_limit if k is None else k,
            self._ranking.distance_unit,
        )

    def reset(self) -> None:
        self.session.reset()

    async def close(self) -> None:
        """Cancel pending work and forget the session."""

        tasks = [task for task in (self._debounce_task, self._lookup_task) if task is not None]
        self._cancel_debounce()
        self._cancel_lookup()
        self.reset()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _submit_after(self, raw_input: str, delay_ms: int) -> SearchOutcome:
        await asyncio.sleep(delay_ms / 1000)
        # Once fired, later keystrokes supersede this search through submit().
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        return await self.submit(raw_input)

    def _retry_after_ms(self, now: float) -> int:
        last = self.session.last_request_issued_at
        if last is None:
            return 0
        remaining = self._search.rate_limit_interval_ms - (now - last)
        if remaining <= 0:
            return 0
        return math.ceil(remaining)

    def _deliver_ranking(self, found: Found) -> None:
        area = self._ranking.service_area
        unit = self._ranking.distance_unit
        in_area = is_in_service_area(found.location, area.center, area.radius, unit)
        ranked = self.nearest() if in_area else []
        if self._renderer is not None:
            self._renderer.on_ranked(found, ranked, in_service_area=in_area)

    def _emit(self, outcome: SearchOutcome) -> SearchOutcome:
        if self._renderer is not None and not isinstance(outcome, Cancelled):
            self._renderer.on_outcome(outcome)
        return outcome

    def _cancel_lookup(self) -> None:
        task = self._lookup_task
        self._lookup_task = None
        if task is not None and not task.done():
            logger.info("search_lookup_cancelled", request_id=self.session.pending_request_id)
            task.cancel()

    def _cancel_debounce(self) -> None:
        task = self._debounce_task
        self._debounce_task = None
        if task is not None and not task.done():
            task.cancel()

    def _clear_pending(self, request_id: str) -> None:
        if self.session.pending_request_id == request_id:
            self.session.pending_request_id = None
            self._lookup_task = None


__all__ = ["SearchController", "SearchSession"]
