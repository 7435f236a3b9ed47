from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace
from typing import List, Optional, Sequence

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from lead_sources.config import Credentials
from lead_sources.scraper import page_selectors
from lead_sources.scraper.errors import DetailResolutionFailure, NavigationFailure
from lead_sources.scraper.grid import body_rows, open_detail_page, parse_total, resolve_link, walk_grid
from lead_sources.scraper.json_logger import JsonLogger
from lead_sources.scraper.settings import ScrapeSettings
from lead_sources.scraper.vendors import VENDOR_ORDER

REPORT_URL = "https://console.example.com/vanguamos/perf.asp"


# ── detail page fakes ───────────────────────────────────────────────────────


class _Cells:
    def __init__(self, texts: Sequence[str]) -> None:
        self.texts = list(texts)

    async def count(self) -> int:
        return len(self.texts)

    def nth(self, index: int) -> SimpleNamespace:
        text = self.texts[index]

        async def _inner_text() -> str:
            return text

        return SimpleNamespace(inner_text=_inner_text)

    async def all_inner_texts(self) -> List[str]:
        return list(self.texts)


class _DetailRows:
    def __init__(self, rows: Sequence[Sequence[str]]) -> None:
        self.rows = rows

    @property
    def first(self) -> SimpleNamespace:
        return SimpleNamespace(locator=lambda _sel: _Cells(self.rows[0]))

    async def count(self) -> int:
        return len(self.rows)

    def nth(self, index: int) -> SimpleNamespace:
        return SimpleNamespace(locator=lambda _sel: _Cells(self.rows[index]))


class _DetailTable:
    def __init__(self, rows: Sequence[Sequence[str]] | None) -> None:
        self.rows = rows

    async def wait_for(self, *, state: str, timeout: int) -> None:
        if self.rows is None:
            raise PlaywrightTimeoutError("Timeout waiting for detail table")

    def locator(self, selector: str) -> _DetailRows:
        return _DetailRows(self.rows or [])


def _detail_rows(*sources: str) -> List[List[str]]:
    return [["Date", "Source"], *[["03/11/2024", source] for source in sources], ["Total", str(len(sources))]]


class _DetailPage:
    def __init__(self, url: str = "about:blank", rows: Sequence[Sequence[str]] | None = None) -> None:
        self.url = url
        self.rows = rows
        self.routes: dict[str, Sequence[Sequence[str]]] = {}
        self.goto_calls: List[str] = []
        self.closed = False
        self.fail_goto = False

    async def goto(self, url: str, wait_until: str = "load", timeout: int | None = None) -> None:
        self.goto_calls.append(url)
        if self.fail_goto:
            raise PlaywrightTimeoutError("net::ERR_TIMED_OUT")
        self.url = url
        self.rows = self.routes.get(url, self.rows)

    async def wait_for_load_state(self, state: str = "load", timeout: int | None = None) -> None:
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        return None

    def locator(self, selector: str) -> SimpleNamespace:
        assert selector == page_selectors.DETAIL_TABLE
        return SimpleNamespace(first=_DetailTable(self.rows))

    async def close(self) -> None:
        self.closed = True


class _Context:
    """Context whose ``page`` event fires only when a queued popup is released."""

    def __init__(self, routes: dict[str, Sequence[Sequence[str]]] | None = None) -> None:
        self.routes = routes or {}
        self.queued_popups: List[_DetailPage] = []
        self.created: List[_DetailPage] = []
        self.existing: List[object] = []
        self.late_popup: Optional[_DetailPage] = None
        self.stray: List[_DetailPage] = []
        self._released: List[_DetailPage] = []
        self._event = asyncio.Event()

    @property
    def pages(self) -> List[object]:
        return [*self.existing, *self.created, *self.stray]

    def release_popup(self) -> None:
        if self.queued_popups:
            self._released.append(self.queued_popups.pop(0))
            self._event.set()
        elif self.late_popup is not None:
            # window shows up without the page event reaching the waiter
            self.stray.append(self.late_popup)
            self.late_popup = None

    async def wait_for_event(self, event: str, timeout: float | None = None) -> _DetailPage:
        assert event == "page"
        try:
            await asyncio.wait_for(self._event.wait(), (timeout or 0) / 1000)
        except asyncio.TimeoutError:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded while waiting for event \"page\"")
        self._event.clear()
        popup = self._released.pop(0)
        self.created.append(popup)
        return popup

    async def new_page(self) -> _DetailPage:
        page = _DetailPage()
        page.routes = self.routes
        self.created.append(page)
        return page


# ── grid fakes ──────────────────────────────────────────────────────────────


class _All:
    def __init__(self, items: Sequence[object]) -> None:
        self.items = list(items)

    async def all(self) -> List[object]:
        return list(self.items)


class _Link:
    def __init__(self, text: str, href: Optional[str], context: _Context, *, click_error: bool = False) -> None:
        self.text = text
        self.href = href
        self.context = context
        self.click_error = click_error
        self.clicks: List[dict] = []

    async def count(self) -> int:
        return 1

    async def inner_text(self) -> str:
        return self.text

    async def get_attribute(self, name: str) -> Optional[str]:
        assert name == "href"
        return self.href

    async def click(self, **kwargs: object) -> None:
        self.clicks.append(kwargs)
        if self.click_error:
            raise PlaywrightTimeoutError("element is not visible")
        self.context.release_popup()


class _NoLink:
    async def count(self) -> int:
        return 0


class _GridCell:
    def __init__(self, text: str, link: object | None = None) -> None:
        self.text = text
        self.link = link

    async def inner_text(self) -> str:
        return self.text

    def locator(self, selector: str) -> SimpleNamespace:
        assert selector == "a"
        return SimpleNamespace(first=self.link or _NoLink())


class _GridRow:
    def __init__(self, cells: Sequence[_GridCell]) -> None:
        self.cells = cells

    def locator(self, selector: str) -> _All:
        assert selector == "td"
        return _All(self.cells)


class _Grid:
    def __init__(self, rows: Sequence[_GridRow], *, visible: bool = True) -> None:
        self.rows = rows
        self.visible = visible

    async def wait_for(self, *, state: str, timeout: int) -> None:
        if not self.visible:
            raise PlaywrightTimeoutError("Timeout waiting for grid")

    def locator(self, selector: str) -> _All:
        assert selector == page_selectors.GRID_ROWS
        return _All(self.rows)


class _ReportPage:
    def __init__(self, grid: _Grid, context: _Context) -> None:
        self.grid = grid
        self.context = context
        self.url = REPORT_URL

    def locator(self, selector: str) -> SimpleNamespace:
        assert selector == page_selectors.RESULTS_GRID
        return SimpleNamespace(first=self.grid)


def _settings() -> ScrapeSettings:
    return ScrapeSettings(
        run_id="test",
        base_url="https://console.example.com/vanguamos/admin.htm",
        credentials=Credentials("n", "np", "u", "up"),
        timezone="America/New_York",
        popup_timeout_ms=50,
    )


def _logger() -> JsonLogger:
    return JsonLogger(run_id="test", stream=io.StringIO())


def _header_row() -> _GridRow:
    return _GridRow([_GridCell("Salesman"), _GridCell("Total In")])


def _footer_rows() -> List[_GridRow]:
    return [
        _GridRow([_GridCell("Totals"), _GridCell("9")]),
        _GridRow([_GridCell("Average"), _GridCell("3")]),
    ]


# ── pure helpers ────────────────────────────────────────────────────────────


def test_body_rows_drops_header_and_two_footer_rows() -> None:
    rows = list(range(10))

    assert body_rows(rows) == [1, 2, 3, 4, 5, 6, 7]
    assert len(body_rows(rows)) == len(rows) - 3


@pytest.mark.parametrize("count", [0, 1, 2, 3])
def test_body_rows_of_tiny_grids_is_empty(count: int) -> None:
    assert body_rows(list(range(count))) == []


@pytest.mark.parametrize(
    "text, expected",
    [("12", 12), (" 3 ", 3), ("0", 0), ("", 0), ("n/a", 0), ("1,200", 0), (None, 0)],
)
def test_parse_total(text: Optional[str], expected: int) -> None:
    assert parse_total(text) == expected


def test_resolve_link_handles_relative_and_script_hrefs() -> None:
    assert resolve_link(REPORT_URL, "/vanguamos/detail.asp?id=4") == "https://console.example.com/vanguamos/detail.asp?id=4"
    assert resolve_link(REPORT_URL, "detail.asp?id=4") == "https://console.example.com/vanguamos/detail.asp?id=4"
    assert resolve_link(REPORT_URL, "https://other.example.com/x") == "https://other.example.com/x"
    assert resolve_link(REPORT_URL, "javascript:void(0)") is None
    assert resolve_link(REPORT_URL, None) is None


# ── detail resolution race ──────────────────────────────────────────────────


DETAIL_URL = "https://console.example.com/vanguamos/detail.asp?id=1"


@pytest.mark.asyncio
async def test_popup_with_content_is_used_directly() -> None:
    context = _Context()
    popup = _DetailPage(url=DETAIL_URL, rows=_detail_rows("MF Paper"))
    context.queued_popups.append(popup)
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)

    async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=50, nav_timeout_ms=1000) as detail:
        assert detail is popup
        assert popup.goto_calls == []

    assert link.clicks == [{"button": "middle", "timeout": 50}]
    assert popup.closed is True
    assert context.created == [popup]


@pytest.mark.asyncio
async def test_blank_popup_is_navigated_to_link() -> None:
    context = _Context()
    popup = _DetailPage(url="about:blank")
    context.queued_popups.append(popup)
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)

    async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=50, nav_timeout_ms=1000) as detail:
        assert detail is popup
        assert detail.url == DETAIL_URL

    assert popup.goto_calls == [DETAIL_URL]
    assert popup.closed is True


@pytest.mark.asyncio
async def test_missing_popup_falls_back_to_new_page() -> None:
    context = _Context()
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)

    async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=20, nav_timeout_ms=1000) as detail:
        assert detail.goto_calls == [DETAIL_URL]

    assert len(context.created) == 1
    assert context.created[0].closed is True


@pytest.mark.asyncio
async def test_failed_click_skips_popup_wait_and_falls_back() -> None:
    context = _Context()
    link = _Link("1", DETAIL_URL, context, click_error=True)
    page = _ReportPage(_Grid([]), context)

    async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=5000, nav_timeout_ms=1000) as detail:
        assert detail.url == DETAIL_URL

    assert context.created[0].closed is True


@pytest.mark.asyncio
async def test_window_opened_after_popup_wait_is_closed() -> None:
    context = _Context()
    late = _DetailPage(url=DETAIL_URL, rows=_detail_rows("Raw"))
    context.late_popup = late
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)
    context.existing.append(page)

    async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=20, nav_timeout_ms=1000) as detail:
        assert detail is not late
        assert context.stray == [late]

    assert late.closed is True
    assert detail.closed is True
    assert late.goto_calls == []


@pytest.mark.asyncio
async def test_detail_page_closed_when_body_raises() -> None:
    context = _Context()
    popup = _DetailPage(url=DETAIL_URL)
    context.queued_popups.append(popup)
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)

    with pytest.raises(RuntimeError, match="boom"):
        async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=50, nav_timeout_ms=1000):
            raise RuntimeError("boom")

    assert popup.closed is True


@pytest.mark.asyncio
async def test_fallback_navigation_failure_raises_and_closes() -> None:
    context = _Context()
    popup = _DetailPage(url="about:blank")
    popup.fail_goto = True
    context.queued_popups.append(popup)
    link = _Link("1", DETAIL_URL, context)
    page = _ReportPage(_Grid([]), context)

    with pytest.raises(DetailResolutionFailure):
        async with open_detail_page(page, link, DETAIL_URL, logger=_logger(), popup_timeout_ms=50, nav_timeout_ms=1000):
            pass

    assert popup.closed is True


@pytest.mark.asyncio
async def test_no_popup_and_no_url_raises() -> None:
    context = _Context()
    link = _Link("1", "javascript:openDetail(1)", context)
    page = _ReportPage(_Grid([]), context)

    with pytest.raises(DetailResolutionFailure):
        async with open_detail_page(page, link, None, logger=_logger(), popup_timeout_ms=20, nav_timeout_ms=1000):
            pass

    assert all(created.closed for created in context.created)


# ── grid walk ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_walk_grid_preserves_order_and_resolves_each_branch() -> None:
    alice_url = "https://console.example.com/vanguamos/detail.asp?rep=alice"
    carol_url = "https://console.example.com/vanguamos/detail.asp?rep=carol"
    context = _Context(routes={carol_url: _detail_rows("MF Calls", "Semi AH", "Unknown")})
    context.queued_popups.append(_DetailPage(url=alice_url, rows=_detail_rows("Equate Media - Raw Calls", "MF Paper")))

    rows = [
        _header_row(),
        _GridRow([_GridCell("Alice"), _GridCell("2", _Link("2", "/vanguamos/detail.asp?rep=alice", context))]),
        _GridRow([_GridCell("  "), _GridCell("5", _Link("5", "/vanguamos/detail.asp?rep=blank", context))]),
        _GridRow([_GridCell("Bob"), _GridCell("0")]),
        _GridRow([]),
        _GridRow([_GridCell("Carol"), _GridCell("3", _Link("3", "detail.asp?rep=carol", context))]),
        _GridRow([_GridCell("Dave"), _GridCell("0", _Link("0", "/vanguamos/detail.asp?rep=dave", context))]),
        *_footer_rows(),
    ]
    page = _ReportPage(_Grid(rows), context)

    reps = await walk_grid(page, settings=_settings(), logger=_logger())

    assert [rep.name for rep in reps] == ["Alice", "Bob", "Carol", "Dave"]
    alice, bob, carol, dave = reps
    assert alice.vendors["Raw"] == 1 and alice.vendors["MF Paper"] == 1
    assert sum(bob.vendors.values()) == 0
    assert carol.vendors["MF Calls"] == 1 and carol.vendors["Semi AH"] == 1
    assert sum(carol.vendors.values()) == 2
    assert sum(dave.vendors.values()) == 0
    for rep in reps:
        assert list(rep.vendors) == list(VENDOR_ORDER)

    assert len(context.created) == 2
    assert all(created.closed for created in context.created)
    assert context.created[1].goto_calls == [carol_url]


@pytest.mark.asyncio
async def test_walk_grid_counts_n_minus_three_rows() -> None:
    context = _Context()
    names = ["Ann", "Ben", "Cid", "Dot", "Eve"]
    rows = [_header_row(), *[_GridRow([_GridCell(name), _GridCell("0")]) for name in names], *_footer_rows()]

    reps = await walk_grid(_ReportPage(_Grid(rows), context), settings=_settings(), logger=_logger())

    assert len(rows) - 3 == len(names)
    assert [rep.name for rep in reps] == names
    assert "Totals" not in [rep.name for rep in reps]


@pytest.mark.asyncio
async def test_walk_grid_missing_grid_raises_navigation_failure() -> None:
    page = _ReportPage(_Grid([], visible=False), _Context())

    with pytest.raises(NavigationFailure):
        await walk_grid(page, settings=_settings(), logger=_logger())


@pytest.mark.asyncio
async def test_row_failure_aborts_walk_and_closes_detail_page() -> None:
    context = _Context()
    broken = _DetailPage(url="https://console.example.com/vanguamos/detail.asp?rep=x", rows=None)
    context.queued_popups.append(broken)
    rows = [
        _header_row(),
        _GridRow([_GridCell("Xena"), _GridCell("4", _Link("4", "/vanguamos/detail.asp?rep=x", context))]),
        _GridRow([_GridCell("Yuri"), _GridCell("0")]),
        *_footer_rows(),
    ]

    with pytest.raises(NavigationFailure, match="Xena"):
        await walk_grid(_ReportPage(_Grid(rows), context), settings=_settings(), logger=_logger())

    assert broken.closed is True
