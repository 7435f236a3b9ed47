from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from playwright.async_api import Browser

from lead_sources.scraper.json_logger import JsonLogger, log_event


async def launch_browser(
    *, playwright: Any, logger: JsonLogger, headless: bool, chrome_executable: str = ""
) -> Browser:
    chrome_exec = (chrome_executable or "").strip() or None
    launch_kwargs: Dict[str, Any] = {"headless": headless}

    if chrome_exec and Path(chrome_exec).is_file():
        launch_kwargs["executable_path"] = chrome_exec
        log_event(
            logger=logger,
            phase="init",
            message="Launching Playwright with local Chrome executable",
            executable_path=chrome_exec,
            headless=headless,
        )
    elif chrome_exec:
        log_event(
            logger=logger,
            phase="init",
            status="warn",
            message="Configured local Chrome executable missing; falling back to bundled Chromium",
            executable_path=chrome_exec,
            headless=headless,
        )
    else:
        log_event(
            logger=logger,
            phase="init",
            message="Launching Playwright with bundled Chromium",
            headless=headless,
        )

    try:
        return await playwright.chromium.launch(**launch_kwargs)
    except Exception as exc:
        if launch_kwargs.pop("executable_path", None) is not None:
            log_event(
                logger=logger,
                phase="init",
                status="warn",
                message="Local Chrome launch failed; retrying with bundled Chromium",
                executable_path=chrome_exec,
                headless=headless,
                error=str(exc),
            )
            return await playwright.chromium.launch(**launch_kwargs)
        raise
