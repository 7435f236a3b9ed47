from __future__ import annotations

import asyncio
import contextlib
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Sequence, TypeVar
from urllib.parse import urljoin, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from lead_sources.scraper import page_selectors
from lead_sources.scraper.detail import aggregate_detail
from lead_sources.scraper.errors import DetailResolutionFailure, NavigationFailure
from lead_sources.scraper.json_logger import JsonLogger, log_event
from lead_sources.scraper.payload import Representative
from lead_sources.scraper.settings import ScrapeSettings
from lead_sources.scraper.vendors import empty_vendor_counts, normalize_label

BLANK_URL = "about:blank"
_COUNT_RE = re.compile(r"^\d+$")

T = TypeVar("T")


def body_rows(rows: Sequence[T]) -> List[T]:
    """Drop the grid's header row and its two trailing summary rows."""

    return list(rows[1 : len(rows) - 2])


def parse_total(text: str | None) -> int:
    cleaned = normalize_label(text)
    if not _COUNT_RE.match(cleaned):
        return 0
    return int(cleaned)


def resolve_link(page_url: str, href: str | None) -> str | None:
    if not href:
        return None
    absolute = urljoin(page_url, href.strip())
    if urlparse(absolute).scheme not in {"http", "https"}:
        return None
    return absolute


async def _goto_detail(page: Page, url: str | None, *, timeout_ms: int) -> None:
    if not url:
        raise DetailResolutionFailure("Detail link has no navigable URL and no popup opened")
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as exc:
        raise DetailResolutionFailure(f"Detail page did not load from {url}: {exc}") from exc


async def _wait_for_popup(page: Page, link: Locator, *, logger: JsonLogger, timeout_ms: int) -> Page | None:
    context = page.context
    popup_task = asyncio.create_task(context.wait_for_event("page", timeout=timeout_ms))

    try:
        await link.click(button="middle", timeout=timeout_ms)
    except PlaywrightError as exc:
        popup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, PlaywrightError):
            await popup_task
        logger.debug(phase="grid", message="Middle-click on detail link failed", error=str(exc))
        return None

    try:
        return await popup_task
    except PlaywrightError:
        return None


@asynccontextmanager
async def open_detail_page(
    page: Page,
    link: Locator,
    url: str | None,
    *,
    logger: JsonLogger,
    popup_timeout_ms: int,
    nav_timeout_ms: int,
    linger_ms: int = 0,
) -> AsyncIterator[Page]:
    """Yield a loaded detail page for ``link`` and close it afterwards.

    The console opens some "Total In" links through script-created windows
    and others as plain anchors. A popup with content is used as-is; a blank
    popup, or no popup at all, is navigated to ``url`` explicitly. Windows the
    click opened after the popup wait gave up are closed with the detail page.
    """

    existing_page_ids = {id(p) for p in page.context.pages}
    opened: List[Page] = []
    try:
        popup = await _wait_for_popup(page, link, logger=logger, timeout_ms=popup_timeout_ms)
        if popup is not None:
            opened.append(popup)
            try:
                await popup.wait_for_load_state("domcontentloaded", timeout=nav_timeout_ms)
            except PlaywrightError as exc:
                logger.warn(phase="grid", message="Detail popup load warning", error=str(exc), popup_url=popup.url)

        if popup is None:
            detail = await page.context.new_page()
            opened.append(detail)
            await _goto_detail(detail, url, timeout_ms=nav_timeout_ms)
            branch = "fallback_page"
        elif popup.url in {"", BLANK_URL}:
            detail = popup
            await _goto_detail(detail, url, timeout_ms=nav_timeout_ms)
            branch = "blank_popup"
        else:
            detail = popup
            branch = "popup"

        logger.debug(phase="grid", message="Detail page resolved", branch=branch, detail_url=detail.url)
        yield detail
        if linger_ms:
            await detail.wait_for_timeout(linger_ms)
    finally:
        opened_ids = {id(p) for p in opened}
        stray = [
            candidate
            for candidate in page.context.pages
            if id(candidate) not in existing_page_ids and id(candidate) not in opened_ids
        ]
        if stray:
            logger.debug(phase="grid", message="Closing late detail windows", count=len(stray))
        for opened_page in [*opened, *stray]:
            with contextlib.suppress(PlaywrightError):
                await opened_page.close()


async def _row_name(cells: Sequence[Locator]) -> str:
    return normalize_label(await cells[0].inner_text())


async def walk_grid(page: Page, *, settings: ScrapeSettings, logger: JsonLogger) -> List[Representative]:
    grid = page_selectors.results_grid(page)
    try:
        await grid.wait_for(state="visible", timeout=settings.grid_timeout_ms)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Results grid not visible: {exc}") from exc

    rows = await grid.locator(page_selectors.GRID_ROWS).all()
    reps: List[Representative] = []

    for row in body_rows(rows):
        cells = await row.locator("td").all()
        if not cells:
            continue
        name = await _row_name(cells)
        if not name:
            continue

        counts = empty_vendor_counts()
        link = cells[1].locator("a").first if len(cells) > 1 else None
        if link is not None and await link.count():
            total = parse_total(await link.inner_text())
            if total > 0:
                url = resolve_link(page.url, await link.get_attribute("href"))
                async with open_detail_page(
                    page,
                    link,
                    url,
                    logger=logger,
                    popup_timeout_ms=settings.popup_timeout_ms,
                    nav_timeout_ms=settings.nav_timeout_ms,
                    linger_ms=settings.detail_linger_ms,
                ) as detail:
                    counts = await aggregate_detail(
                        detail, rep_name=name, logger=logger, timeout_ms=settings.detail_timeout_ms
                    )

        reps.append(Representative(name=name, vendors=counts))

    log_event(logger=logger, phase="grid", message="Grid walked", reps=len(reps), grid_rows=len(rows))
    return reps
