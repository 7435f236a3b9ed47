"""Weekly lead-source scraper for the Granot admin console."""

from typing import Any

__all__ = ["run_with_retries", "scrape_once"]


def __getattr__(name: str) -> Any:
    if name in __all__:
        from lead_sources.scraper import pipeline as _pipeline

        return getattr(_pipeline, name)
    raise AttributeError(name)
