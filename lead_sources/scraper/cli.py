from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

import aiohttp

from lead_sources.config import Config, ConfigError
from lead_sources.scraper.json_logger import get_logger, log_event, new_run_id
from lead_sources.scraper.payload import deliver_payload
from lead_sources.scraper.pipeline import run_with_retries, scrape_once
from lead_sources.scraper.settings import load_settings

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lead-sources",
        description="Scrape weekly lead-source counts per sales representative",
    )
    parser.add_argument("--last-week", dest="last_week", action="store_true", help="Scrape the previous Monday-Sunday week")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Print the payload instead of posting it")
    parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")
    parser.add_argument("--retries", dest="retries", type=int, default=None, help="Override the RETRIES attempt budget")
    return parser


async def _run_async(args: argparse.Namespace) -> int:
    run_id = args.run_id or new_run_id()

    try:
        config = Config.load_from_env()
        settings = load_settings(config, run_id=run_id, last_week=args.last_week, retries=args.retries)
    except (ConfigError, ValueError) as exc:
        logger = get_logger(run_id=run_id)
        log_event(logger=logger, phase="prereq", status="error", message=str(exc))
        logger.close()
        return EXIT_CONFIG

    logger = get_logger(run_id=run_id, log_file_path=config.json_log_file, debug=config.debug)
    try:
        log_event(
            logger=logger,
            phase="init",
            message="Starting lead source scrape",
            attempts=settings.retries,
            last_week=settings.last_week,
            headless=settings.headless,
            sink="stdout" if args.dry_run or not config.sink_url else "collector",
        )

        payload = await run_with_retries(
            lambda attempt_logger: scrape_once(settings, logger=attempt_logger),
            attempts=settings.retries,
            logger=logger,
            backoff_seconds=settings.retry_backoff_seconds,
        )
        if payload is None:
            return EXIT_FAILED

        try:
            await deliver_payload(
                payload,
                sink_url="" if args.dry_run else config.sink_url,
                logger=logger,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error(phase="deliver", message="Payload delivery failed", error=str(exc), exc_type=type(exc).__name__)
            return EXIT_FAILED
        return EXIT_OK
    finally:
        logger.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else sys.argv[1:])
    return asyncio.run(_run_async(args))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
