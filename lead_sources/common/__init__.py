"""Shared helpers used across the scraper."""

from lead_sources.common.date_utils import WeekRange, format_mmddyyyy, get_timezone, get_week_range

__all__ = ["WeekRange", "format_mmddyyyy", "get_timezone", "get_week_range"]
