"""Attempt-scoped failures raised while driving the admin console.

Every error here aborts the current attempt only; the retry loop treats
them uniformly. Configuration problems are ``lead_sources.config.ConfigError``
and are never retried.
"""

from __future__ import annotations


class ScrapeError(RuntimeError):
    """Base class for failures that abort one scrape attempt."""


class AuthenticationFailure(ScrapeError):
    """A login gate's frame, input or submit control could not be used."""


class ReportLocationFailure(ScrapeError):
    """The report URL could not be found in the admin page scripts."""


class NavigationFailure(ScrapeError):
    """An expected page, table or control was not ready within its wait bound."""


class DetailResolutionFailure(ScrapeError):
    """Neither the popup nor the fallback navigation produced a detail page."""
