from __future__ import annotations

from typing import Dict, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from lead_sources.scraper.errors import NavigationFailure
from lead_sources.scraper.json_logger import JsonLogger
from lead_sources.scraper.page_selectors import detail_table
from lead_sources.scraper.settings import DETAIL_TIMEOUT_MS
from lead_sources.scraper.vendors import classify_source, empty_vendor_counts, normalize_label

SOURCE_HEADER = "source"


def source_column_index(headers: Sequence[str]) -> int | None:
    """Column holding the source label; the last header column when unnamed.

    ``None`` means there is no header row at all and each row's last cell
    should be used.
    """

    normalized = [normalize_label(header).lower() for header in headers]
    if SOURCE_HEADER in normalized:
        return normalized.index(SOURCE_HEADER)
    if normalized:
        return len(normalized) - 1
    return None


async def aggregate_detail(
    page: Page,
    *,
    rep_name: str,
    logger: JsonLogger,
    timeout_ms: int = DETAIL_TIMEOUT_MS,
) -> Dict[str, int]:
    counts = empty_vendor_counts()

    table = detail_table(page)
    try:
        await table.wait_for(state="visible", timeout=timeout_ms)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Detail table for {rep_name!r} not visible: {exc}") from exc

    rows = table.locator("tr")
    headers = await rows.first.locator("td,th").all_inner_texts()
    source_idx = source_column_index(headers)

    row_count = await rows.count()
    logger.debug(phase="detail", message="Detail rows found", rep=rep_name, rows=max(row_count - 1, 0))

    # Row 0 is the header and the final row is the totals footer.
    for index in range(1, row_count - 1):
        cells = rows.nth(index).locator("td")
        cell_count = await cells.count()
        if cell_count < 2:
            continue

        column = cell_count - 1 if source_idx is None else min(source_idx, cell_count - 1)
        label = await cells.nth(column).inner_text()
        vendor = classify_source(label)
        if vendor is None:
            logger.debug(phase="detail", message="Unclassified source label", rep=rep_name, source=normalize_label(label))
            continue
        counts[vendor] += 1

    return counts
