from __future__ import annotations

from dataclasses import dataclass

from lead_sources.config import Config, Credentials

NAV_TIMEOUT_MS = 60_000
FRAME_TIMEOUT_MS = 30_000
GRID_TIMEOUT_MS = 20_000
DETAIL_TIMEOUT_MS = 15_000
POPUP_TIMEOUT_MS = 10_000
REPORT_SETTLE_MS = 600
DETAIL_LINGER_MS = 200
RETRY_BACKOFF_SECONDS = 1.2


@dataclass(frozen=True)
class ScrapeSettings:
    """Everything one scrape attempt needs, resolved once per process."""

    run_id: str
    base_url: str
    credentials: Credentials
    timezone: str
    headless: bool = True
    last_week: bool = False
    retries: int = 1
    settle_ms: int = 1500
    report_settle_ms: int = REPORT_SETTLE_MS
    nav_timeout_ms: int = NAV_TIMEOUT_MS
    frame_timeout_ms: int = FRAME_TIMEOUT_MS
    grid_timeout_ms: int = GRID_TIMEOUT_MS
    detail_timeout_ms: int = DETAIL_TIMEOUT_MS
    popup_timeout_ms: int = POPUP_TIMEOUT_MS
    retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS
    chrome_executable: str = ""

    @property
    def detail_linger_ms(self) -> int:
        # Headed runs keep each detail page on screen briefly before closing it.
        return 0 if self.headless else DETAIL_LINGER_MS


def load_settings(
    config: Config,
    *,
    run_id: str,
    last_week: bool = False,
    retries: int | None = None,
) -> ScrapeSettings:
    if retries is not None and retries < 1:
        raise ValueError("--retries must be at least 1")
    return ScrapeSettings(
        run_id=run_id,
        base_url=config.base_url,
        credentials=config.credentials,
        timezone=config.pipeline_timezone,
        headless=config.headless,
        last_week=last_week,
        retries=retries or config.retries,
        settle_ms=config.net_idle_ms,
        chrome_executable=config.chrome_executable,
    )
