from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page

from lead_sources.config import Credentials
from lead_sources.scraper import page_selectors
from lead_sources.scraper.errors import AuthenticationFailure, NavigationFailure
from lead_sources.scraper.json_logger import JsonLogger, log_event
from lead_sources.scraper.settings import FRAME_TIMEOUT_MS, NAV_TIMEOUT_MS


@dataclass(frozen=True)
class LoginGate:
    """One login form rendered inside the console's content frame."""

    name: str
    id_selector: str
    password_selector: str
    submit_selector: str
    id_field: str
    password_field: str

    def values(self, credentials: Credentials) -> Tuple[str, str]:
        return getattr(credentials, self.id_field), getattr(credentials, self.password_field)


LOGIN_GATES: Tuple[LoginGate, ...] = (
    LoginGate(
        name="network",
        id_selector=page_selectors.NETWORK_ID_INPUT,
        password_selector=page_selectors.NETWORK_PASSWORD_INPUT,
        submit_selector=page_selectors.NETWORK_SUBMIT,
        id_field="network_id",
        password_field="network_password",
    ),
    LoginGate(
        name="user",
        id_selector=page_selectors.USER_ID_INPUT,
        password_selector=page_selectors.USER_PASSWORD_INPUT,
        submit_selector=page_selectors.USER_SUBMIT,
        id_field="user_id",
        password_field="user_password",
    ),
)


async def acquire_content_frame(page: Page, *, stage: str, timeout_ms: int = FRAME_TIMEOUT_MS) -> Frame:
    try:
        handle = await page.wait_for_selector(page_selectors.CONTENT_FRAME, timeout=timeout_ms)
    except PlaywrightError as exc:
        raise AuthenticationFailure(f"{stage}: content frame not found within {timeout_ms} ms") from exc
    frame = await handle.content_frame() if handle else None
    if frame is None:
        raise AuthenticationFailure(f"{stage}: content frame has no document")
    return frame


async def _submit_gate(
    page: Page,
    gate: LoginGate,
    credentials: Credentials,
    *,
    logger: JsonLogger,
    settle_ms: int,
    timeout_ms: int,
) -> None:
    frame = await acquire_content_frame(page, stage=f"{gate.name} gate", timeout_ms=timeout_ms)
    identifier, password = gate.values(credentials)

    try:
        await frame.locator(gate.id_selector).first.fill(identifier, timeout=timeout_ms)
        await frame.locator(gate.password_selector).first.fill(password, timeout=timeout_ms)
    except PlaywrightError as exc:
        raise AuthenticationFailure(f"{gate.name} gate: login inputs not found") from exc

    try:
        await asyncio.gather(
            page.wait_for_load_state("domcontentloaded"),
            frame.locator(gate.submit_selector).first.click(timeout=timeout_ms),
        )
    except PlaywrightError as exc:
        raise AuthenticationFailure(f"{gate.name} gate: submit failed: {exc}") from exc

    # The console redirects client-side after each gate with no idle signal.
    await page.wait_for_timeout(settle_ms)
    log_event(logger=logger, phase="login", message="Login gate submitted", gate=gate.name)


async def perform_login(
    page: Page,
    *,
    base_url: str,
    credentials: Credentials,
    logger: JsonLogger,
    settle_ms: int,
    timeout_ms: int = FRAME_TIMEOUT_MS,
    nav_timeout_ms: int = NAV_TIMEOUT_MS,
) -> Frame:
    """Walk both login gates and return the authenticated content frame."""

    try:
        await page.goto(base_url, wait_until="domcontentloaded", timeout=nav_timeout_ms)
    except PlaywrightError as exc:
        raise NavigationFailure(f"Admin console did not load: {exc}") from exc

    for gate in LOGIN_GATES:
        await _submit_gate(
            page,
            gate,
            credentials,
            logger=logger,
            settle_ms=settle_ms,
            timeout_ms=timeout_ms,
        )

    frame = await acquire_content_frame(page, stage="admin menu", timeout_ms=timeout_ms)
    log_event(logger=logger, phase="login", message="Authenticated", frame_url=frame.url)
    return frame
