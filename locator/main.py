"""Application entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

import httpx

from locator.config import get_settings
from locator.domain.outcomes import RateLimited, SearchOutcome
from locator.i18n import MessageCatalog
from locator.logging import configure_logging, logger
from locator.render import build_renderer
from locator.services.catalog import load_catalog_or_default
from locator.services.geocoder import GeocodeClient
from locator.services.search import SearchController

# Caller-side retries for locally throttled searches.
RATE_LIMIT_MAX_RETRIES = 3


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="service-locator",
        description="Find the nearest service locations for a US ZIP code.",
    )
    parser.add_argument(
        "postal_codes",
        nargs="*",
        help="ZIP codes to search; read one per line from stdin when omitted.",
    )
    return parser.parse_args(argv)


async def submit_with_retry(controller: SearchController, postal_code: str) -> SearchOutcome:
    """Submit a search, waiting out local throttling a bounded number of times."""

    outcome = await controller.submit(postal_code)
    attempts = 0
    while (
        isinstance(outcome, RateLimited)
        and not outcome.from_provider
        and attempts < RATE_LIMIT_MAX_RETRIES
    ):
        attempts += 1
        await asyncio.sleep(outcome.retry_after_ms / 1000)
        outcome = await controller.submit(postal_code)
    return outcome


async def _read_lines():
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        if line.strip():
            yield line


async def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    settings = get_settings()
    args = _parse_args(argv)

    messages = MessageCatalog(settings.default_language)
    renderer = build_renderer(settings.renderer, messages=messages)

    async with httpx.AsyncClient(
        headers={"User-Agent": settings.geocoder.user_agent},
        timeout=settings.geocoder.lookup_timeout_ms / 1000,
    ) as client:
        catalog = await load_catalog_or_default(
            settings.catalog.source,
            http_client=client,
            timeout=settings.catalog.request_timeout_seconds,
        )
        controller = SearchController(
            GeocodeClient(client, settings.geocoder),
            catalog,
            search_settings=settings.search,
            ranking_settings=settings.ranking,
            renderer=renderer,
        )
        logger.info(
            "locator_starting",
            environment=settings.environment,
            services=len(catalog),
            fallback_catalog=catalog.is_fallback,
        )
        try:
            if args.postal_codes:
                for postal_code in args.postal_codes:
                    await submit_with_retry(controller, postal_code)
            else:
                async for line in _read_lines():
                    await submit_with_retry(controller, line)
        finally:
            await controller.close()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
