# File: lead_sources/scraper/page_selectors.py
from __future__ import annotations

from playwright.async_api import Locator, Page

CONTENT_FRAME = 'frame[name="content"]'

# Gate 1 (network)
NETWORK_ID_INPUT = 'input[name="NetworkID"], input[type="text"]'
NETWORK_PASSWORD_INPUT = 'input[name="Password"], input[type="password"]'
NETWORK_SUBMIT = 'input[name="LOGON"], input[type="submit"]'

# Gate 2 (console user)
USER_ID_INPUT = 'input[type="text"]'
USER_PASSWORD_INPUT = 'input[type="password"]'
USER_SUBMIT = 'input.inputlogin, input[name="LOGON"], input[type="submit"]'

# Salesmen Performance report
DATE_FROM_INPUT = "#Date1"
DATE_TO_INPUT = "#Date2"
REPORT_SUBMIT = 'input.SUBMIT, input[type="button"][value="Submit"]'

RESULTS_GRID = 'table[border="1"][width="99%"]'
GRID_ROWS = ":scope > tbody > tr"
DETAIL_TABLE = 'table[bgcolor="#EEEEEE"], table[width="98%"]'


def results_grid(page: Page) -> Locator:
    """The bordered full-width table holding one row per representative."""

    return page.locator(RESULTS_GRID).first


def detail_table(page: Page) -> Locator:
    """The grey lead listing table on a representative's "Total In" page."""

    return page.locator(DETAIL_TABLE).first
