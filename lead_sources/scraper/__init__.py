"""Playwright flow that walks the console from login to the payload."""
