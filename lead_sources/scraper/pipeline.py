from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from playwright.async_api import async_playwright

from lead_sources.common.date_utils import get_timezone, get_week_range
from lead_sources.config import ConfigError
from lead_sources.scraper.browser import launch_browser
from lead_sources.scraper.grid import walk_grid
from lead_sources.scraper.json_logger import JsonLogger, log_event, timed_event
from lead_sources.scraper.login import perform_login
from lead_sources.scraper.payload import Payload, build_payload
from lead_sources.scraper.report import apply_week_filter, open_report_page
from lead_sources.scraper.settings import RETRY_BACKOFF_SECONDS, ScrapeSettings

T = TypeVar("T")


async def scrape_once(settings: ScrapeSettings, *, logger: JsonLogger) -> Payload:
    """Run one complete attempt in its own browser, closed on every path."""

    async with async_playwright() as playwright:
        browser = await launch_browser(
            playwright=playwright,
            logger=logger,
            headless=settings.headless,
            chrome_executable=settings.chrome_executable,
        )
        try:
            context = await browser.new_context()
            page = await context.new_page()

            with timed_event(logger=logger, phase="login", message="Console login"):
                frame = await perform_login(
                    page,
                    base_url=settings.base_url,
                    credentials=settings.credentials,
                    logger=logger,
                    settle_ms=settings.settle_ms,
                    timeout_ms=settings.frame_timeout_ms,
                    nav_timeout_ms=settings.nav_timeout_ms,
                )

            report_page = await open_report_page(
                context,
                frame,
                logger=logger,
                fallback_url=settings.base_url,
                timeout_ms=settings.nav_timeout_ms,
            )

            week = get_week_range(tz=get_timezone(settings.timezone), last_week=settings.last_week)
            await apply_week_filter(
                report_page,
                week,
                logger=logger,
                settle_ms=settings.report_settle_ms,
                timeout_ms=settings.nav_timeout_ms,
            )

            with timed_event(logger=logger, phase="grid", message="Grid scrape", week=week.label):
                reps = await walk_grid(report_page, settings=settings, logger=logger)
        finally:
            await browser.close()

    return build_payload(week, reps)


async def run_with_retries(
    attempt: Callable[[JsonLogger], Awaitable[T]],
    *,
    attempts: int,
    logger: JsonLogger,
    backoff_seconds: float = RETRY_BACKOFF_SECONDS,
) -> Optional[T]:
    """Run ``attempt`` until it succeeds or ``attempts`` runs have failed.

    Every retry starts from scratch. Returns ``None`` once the budget is
    spent; configuration errors propagate immediately.
    """

    for number in range(1, attempts + 1):
        attempt_logger = logger.bind(attempt=number)
        try:
            result = await attempt(attempt_logger)
        except ConfigError:
            raise
        except Exception as exc:
            attempt_logger.error(
                phase="attempt",
                message=f"Attempt {number}/{attempts} failed",
                error=str(exc),
                exc_type=type(exc).__name__,
            )
            if number < attempts:
                await asyncio.sleep(backoff_seconds)
            continue

        log_event(logger=attempt_logger, phase="attempt", message=f"Attempt {number}/{attempts} succeeded")
        return result

    logger.error(phase="attempt", message="All attempts exhausted", attempts=attempts)
    return None
