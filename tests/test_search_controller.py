"""SearchController throttling, supersession, debounce and teardown."""

from __future__ import annotations

import asyncio
import re

import httpx
import pytest
import structlog
from structlog.testing import LogCapture

from locator.config import GeocoderSettings, RankingSettings, SearchSettings
from locator.domain.models import Coordinate
from locator.domain.outcomes import (
    Cancelled,
    Found,
    InvalidInput,
    NotFound,
    RateLimited,
    TimedOut,
)
from locator.logging import configure_logging
from locator.services.geocoder import GeocodeClient
from locator.services.search import SearchController

NYC_PAYLOAD = [{"lat": "40.7128", "lon": "-74.0060", "display_name": "New York, NY 10001, United States"}]
LA_PAYLOAD = [{"lat": "34.0522", "lon": "-118.2437", "display_name": "Los Angeles, CA 90001, United States"}]


class RecordingTransport:
    """Mock provider that answers by ZIP code and can hold requests open."""

    def __init__(self, responses: dict[str, list[dict]] | None = None) -> None:
        self.responses = responses or {}
        self.queries: list[str] = []
        self.hold: set[str] = set()
        self.started = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        postal_code = request.url.params["q"].split()[0]
        self.queries.append(postal_code)
        if postal_code in self.hold:
            self.started.set()
            await asyncio.Event().wait()
        return httpx.Response(200, json=self.responses.get(postal_code, NYC_PAYLOAD))


def _controller(client, catalog, clock, renderer, *, timeout_ms=8000, debounce_ms=20, **search):
    return SearchController(
        GeocodeClient(client, GeocoderSettings(lookup_timeout_ms=timeout_ms)),
        catalog,
        search_settings=SearchSettings(debounce_delay_ms=debounce_ms, **search),
        ranking_settings=RankingSettings(),
        renderer=renderer,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_submit_found_stores_location_and_ranks(catalog, clock, renderer):
    transport = RecordingTransport()
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        outcome = await controller.submit("  10001 ")

    assert isinstance(outcome, Found)
    assert controller.session.last_resolved_location == Coordinate(lat=40.7128, lon=-74.006)
    assert controller.session.last_display_name == "New York, NY 10001, United States"
    assert controller.session.pending_request_id is None
    assert renderer.outcomes == [outcome]

    found, ranked, in_area = renderer.rankings[0]
    assert found is outcome
    assert in_area is True
    assert len(ranked) == 5
    assert ranked[0].name == "Financial District AC"
    assert [s.distance for s in ranked] == sorted(s.distance for s in ranked)


@pytest.mark.asyncio
async def test_submit_outside_service_area_delivers_empty_ranking(catalog, clock, renderer):
    transport = RecordingTransport({"90001": LA_PAYLOAD})
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        outcome = await controller.submit("90001")

    assert isinstance(outcome, Found)
    assert renderer.rankings == [(outcome, [], False)]
    assert len(controller.nearest()) == 5


@pytest.mark.asyncio
async def test_empty_and_malformed_input_skip_rate_limit(catalog, clock, renderer):
    transport = RecordingTransport()
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        assert await controller.submit("   ") == InvalidInput("empty")
        assert await controller.submit("1000") == InvalidInput("invalid_postal_code")
        outcome = await controller.submit("10001")

    assert isinstance(outcome, Found)
    assert transport.queries == ["10001"]
    assert renderer.outcomes[:2] == [InvalidInput("empty"), InvalidInput("invalid_postal_code")]


@pytest.mark.asyncio
async def test_second_search_within_interval_is_rate_limited(catalog, clock, renderer):
    transport = RecordingTransport({"90001": LA_PAYLOAD})
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        first = await controller.submit("10001")
        issued_at = controller.session.last_request_issued_at

        clock.advance(200)
        second = await controller.submit("90001")

        assert isinstance(second, RateLimited)
        assert second.retry_after_ms == pytest.approx(800, abs=1)
        assert second.from_provider is False
        assert controller.session.last_resolved_location == first.location
        assert controller.session.last_request_issued_at == issued_at
        assert transport.queries == ["10001"]

        clock.advance(1000)
        third = await controller.submit("90001")

    assert isinstance(third, Found)
    assert controller.session.last_resolved_location == third.location
    assert transport.queries == ["10001", "90001"]


@pytest.mark.asyncio
async def test_new_search_supersedes_pending_lookup(catalog, clock, renderer):
    transport = RecordingTransport({"90001": LA_PAYLOAD})
    transport.hold.add("10001")
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        first = asyncio.create_task(controller.submit("10001"))
        await transport.started.wait()
        first_request_id = controller.session.pending_request_id

        clock.advance(1500)
        second = await controller.submit("90001")
        first_outcome = await first

    assert first_outcome == Cancelled(request_id=first_request_id)
    assert isinstance(second, Found)
    assert renderer.outcomes == [second]
    assert controller.session.last_display_name.startswith("Los Angeles")


class StubbornGeocoder:
    """Answers its first lookup even after being cancelled."""

    default_timeout_ms = 8000

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.calls = 0

    async def lookup(self, query, timeout_ms):
        self.calls += 1
        if self.calls == 1:
            self.started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                pass
        return Found(location=Coordinate(lat=40.75, lon=-73.99), display_name=query.normalized_input)


@pytest.mark.asyncio
async def test_late_response_for_superseded_request_is_discarded(catalog, clock, renderer):
    geocoder = StubbornGeocoder()
    controller = SearchController(geocoder, catalog, renderer=renderer, clock=clock)

    first = asyncio.create_task(controller.submit("10001"))
    await geocoder.started.wait()
    clock.advance(1500)
    second = await controller.submit("10002")
    first_outcome = await first

    assert isinstance(first_outcome, Cancelled)
    assert second.display_name == "10002"
    assert renderer.outcomes == [second]
    assert controller.session.last_display_name == "10002"


@pytest.mark.asyncio
async def test_timed_out_lookup_emits_once(catalog, clock, renderer):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.3)
        return httpx.Response(200, json=NYC_PAYLOAD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        controller = _controller(client, catalog, clock, renderer, timeout_ms=50)
        outcome = await controller.submit("10001")
        await asyncio.sleep(0.4)

    assert outcome == TimedOut(timeout_ms=50)
    assert renderer.outcomes == [outcome]
    assert renderer.rankings == []
    assert controller.session.last_resolved_location is None


@pytest.mark.asyncio
async def test_not_found_keeps_previous_location(catalog, clock, renderer):
    transport = RecordingTransport({"99999": []})
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        found = await controller.submit("10001")
        clock.advance(1500)
        outcome = await controller.submit("99999")

    assert outcome == NotFound(query="99999")
    assert controller.session.last_resolved_location == found.location
    assert len(renderer.rankings) == 1


@pytest.mark.asyncio
async def test_debounce_only_fires_latest_input(catalog, clock, renderer):
    transport = RecordingTransport()
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        first = controller.schedule_debounced("100")
        second = controller.schedule_debounced("1000")
        last = controller.schedule_debounced("10001")
        outcome = await last

    assert first.cancelled()
    assert second.cancelled()
    assert isinstance(outcome, Found)
    assert transport.queries == ["10001"]


@pytest.mark.asyncio
async def test_debounce_ignores_short_input_and_costs_no_budget(catalog, clock, renderer):
    transport = RecordingTransport()
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer, debounce_ms=1000)
        pending = controller.schedule_debounced("10001")
        assert controller.schedule_debounced("10") is None
        outcome = await controller.submit("10001")
        await asyncio.sleep(0)

    assert pending.cancelled()
    assert isinstance(outcome, Found)
    assert transport.queries == ["10001"]


@pytest.mark.asyncio
async def test_close_cancels_pending_work_and_resets_session(catalog, clock, renderer):
    transport = RecordingTransport()
    transport.hold.add("10001")
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        search = asyncio.create_task(controller.submit("10001"))
        await transport.started.wait()
        debounce = controller.schedule_debounced("10002")

        await controller.close()
        outcome = await search

    assert isinstance(outcome, Cancelled)
    assert debounce.cancelled()
    assert controller.session.last_request_issued_at is None
    assert controller.session.pending_request_id is None
    assert renderer.outcomes == []


@pytest.mark.asyncio
async def test_cancelling_the_caller_propagates(catalog, clock, renderer):
    transport = RecordingTransport()
    transport.hold.add("10001")
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        search = asyncio.create_task(controller.submit("10001"))
        await transport.started.wait()
        search.cancel()
        with pytest.raises(asyncio.CancelledError):
            await search

    assert controller.session.pending_request_id is None
    assert renderer.outcomes == []


@pytest.mark.asyncio
async def test_nearest_without_location_is_empty(catalog, clock, renderer):
    async with httpx.AsyncClient(transport=httpx.MockTransport(RecordingTransport())) as client:
        controller = _controller(client, catalog, clock, renderer)
        assert controller.nearest() == []
        await controller.submit("10001")
        assert [s.name for s in controller.nearest(k=2)] == [
            "Financial District AC",
            "Battery Park Air Systems",
        ]

    controller.reset()
    assert controller.nearest() == []


@pytest.mark.asyncio
async def test_lookup_logs_carry_the_submitting_request_id(catalog, clock, renderer):
    configure_logging()
    capture = LogCapture()
    structlog.configure(
        processors=[*structlog.get_config()["processors"][:-1], capture],
        cache_logger_on_first_use=False,
    )
    transport = RecordingTransport()
    async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
        controller = _controller(client, catalog, clock, renderer)
        await controller.submit("10001")
        clock.advance(1500)
        await controller.submit("90001")

    lookup_events = [
        entry for entry in capture.entries
        if entry["event"] in {"geocode_lookup_started", "geocode_lookup_finished"}
    ]
    assert [entry["event"] for entry in lookup_events] == [
        "geocode_lookup_started",
        "geocode_lookup_finished",
        "geocode_lookup_started",
        "geocode_lookup_finished",
    ]
    first_id = lookup_events[0]["request_id"]
    second_id = lookup_events[2]["request_id"]
    assert re.fullmatch(r"[0-9a-f]{32}", first_id)
    assert lookup_events[1]["request_id"] == first_id
    assert lookup_events[3]["request_id"] == second_id
    assert second_id != first_id
    assert "request_id" not in structlog.contextvars.get_contextvars()
