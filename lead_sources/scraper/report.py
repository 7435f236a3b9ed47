from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

from playwright.async_api import BrowserContext, Frame, Page
from playwright.async_api import Error as PlaywrightError

from lead_sources.common.date_utils import WeekRange, format_mmddyyyy
from lead_sources.scraper import page_selectors
from lead_sources.scraper.errors import NavigationFailure, ReportLocationFailure
from lead_sources.scraper.json_logger import JsonLogger, log_event
from lead_sources.scraper.settings import NAV_TIMEOUT_MS, REPORT_SETTLE_MS

# Salesmen Performance is menu entry 21 in the admin menu script.
REPORT_MENU_INDEX = 21

COLLECT_SCRIPTS_JS = "() => Array.from(document.scripts).map(s => s.textContent || '').join('\\n')"


def _menu_pattern(menu_index: int) -> re.Pattern[str]:
    return re.compile(
        rf"if\s*\(\s*i\s*==\s*{menu_index}\s*\)\s*window\.open\('([^']+)'",
        re.IGNORECASE,
    )


def extract_report_path(script_text: str | None, menu_index: int = REPORT_MENU_INDEX) -> str:
    """Return the literal URL argument of the menu's ``window.open`` call."""

    match = _menu_pattern(menu_index).search(script_text or "")
    if not match:
        raise ReportLocationFailure(f"Could not extract report URL for menu {menu_index}")
    return match.group(1)


def resolve_against_origin(page_url: str, path: str, *, fallback_url: str | None = None) -> str:
    parsed = urlparse(page_url or "")
    if parsed.scheme not in {"http", "https"} and fallback_url:
        parsed = urlparse(fallback_url)
    if parsed.scheme not in {"http", "https"}:
        raise ReportLocationFailure(f"Cannot resolve {path!r} without an http(s) origin")
    origin = f"{parsed.scheme}://{parsed.netloc}/"
    return urljoin(origin, path)


async def open_report_page(
    context: BrowserContext,
    frame: Frame,
    *,
    logger: JsonLogger,
    fallback_url: str | None = None,
    timeout_ms: int = NAV_TIMEOUT_MS,
) -> Page:
    try:
        script_text = await frame.evaluate(COLLECT_SCRIPTS_JS)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Unable to read admin menu scripts: {exc}") from exc

    path = extract_report_path(script_text)
    report_url = resolve_against_origin(frame.url, path, fallback_url=fallback_url)
    log_event(logger=logger, phase="report", message="Report URL located", report_url=report_url)

    report_page = await context.new_page()
    try:
        await report_page.goto(report_url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Report page did not load: {exc}") from exc
    return report_page


async def apply_week_filter(
    page: Page,
    week: WeekRange,
    *,
    logger: JsonLogger,
    settle_ms: int = REPORT_SETTLE_MS,
    timeout_ms: int = NAV_TIMEOUT_MS,
) -> None:
    from_date = format_mmddyyyy(week.monday)
    to_date = format_mmddyyyy(week.sunday)
    try:
        await page.fill(page_selectors.DATE_FROM_INPUT, from_date, timeout=timeout_ms)
        await page.fill(page_selectors.DATE_TO_INPUT, to_date, timeout=timeout_ms)
        await page.locator(page_selectors.REPORT_SUBMIT).first.click(timeout=timeout_ms)
        await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Unable to apply report date range: {exc}") from exc

    # The grid refresh has no reliable completion signal.
    await page.wait_for_timeout(settle_ms)
    log_event(logger=logger, phase="report", message="Date range applied", from_date=from_date, to_date=to_date)
