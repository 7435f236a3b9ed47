"""
CONFIG.PY - SINGLE SOURCE OF TRUTH (SSOT)

This module is the ONLY place allowed to read environment variables.

Credentials MUST exist; there are no defaults for them. If any required
variable is missing or invalid, the run MUST fail before a browser starts.
Operational knobs (retries, settle delay, headless) fall back to the values
the console scrape has always used.

Load once at startup and pass the resulting Config down:

    from lead_sources.config import Config

    config = Config.load_from_env()

Do not access os.getenv directly from any other module.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


# Determine project root correctly (directory containing the top-level package)
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Load variables from .env if it exists; OS env overrides these automatically
load_dotenv(PROJECT_ROOT / ".env")

if os.getenv("DEBUG_CONFIG") == "1":
    print("[CONFIG] Loaded .env from:", PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://fox.hellomoving.com/vanguamos/admin.htm"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_RETRIES = 1
DEFAULT_NET_IDLE_MS = 1500

# Each required key may be satisfied by any of its aliases, first one wins.
CREDENTIAL_KEYS: dict[str, tuple[str, ...]] = {
    "GRANOT_NET_ID": ("GRANOT_NET_ID", "NETWORK_ID"),
    "GRANOT_NET_PASS": ("GRANOT_NET_PASS", "NETWORK_PASS"),
    "GRANOT_USER": ("GRANOT_USER",),
    "GRANOT_PASS": ("GRANOT_PASS",),
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


@dataclass(slots=True, frozen=True)
class Credentials:
    network_id: str
    network_password: str
    user_id: str
    user_password: str

    def __repr__(self) -> str:
        return f"Credentials(network_id={self.network_id!r}, user_id={self.user_id!r})"


def _lookup(environ: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = environ.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None


def _require_env(environ: Mapping[str, str], key: str, aliases: tuple[str, ...]) -> str:
    value = _lookup(environ, *aliases)
    if value is None:
        message = f"Missing required environment variable: {key}"
        logger.error(message)
        raise ConfigError(message)
    return value


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    message = f"Config key {key} must be a boolean string; got {value!r}"
    logger.error(message)
    raise ConfigError(message)


def _parse_int(value: str, *, key: str, minimum: int | None = None) -> int:
    try:
        parsed = int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if minimum is not None and parsed < minimum:
        message = f"Config key {key} must be >= {minimum}; got {parsed}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _clean_url(value: str, *, key: str) -> str:
    stripped = value.strip()
    if not stripped:
        message = f"Config key {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    if not stripped.lower().startswith(("http://", "https://")):
        message = f"Config key {key} must be an http(s) URL; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _clean_timezone(value: str, *, key: str) -> str:
    stripped = value.strip()
    try:
        ZoneInfo(stripped)
    except (ZoneInfoNotFoundError, ValueError):
        message = f"Config key {key} must be an IANA timezone name; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return stripped


@dataclass(slots=True, frozen=True)
class Config:
    base_url: str
    sink_url: str
    network_id: str
    network_password: str
    user_id: str
    user_password: str
    headless: bool
    retries: int
    net_idle_ms: int
    debug: bool
    pipeline_timezone: str
    json_log_file: str
    chrome_executable: str

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            network_id=self.network_id,
            network_password=self.network_password,
            user_id=self.user_id,
            user_password=self.user_password,
        )

    @classmethod
    def load_from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        env = os.environ if environ is None else environ

        secrets = {
            key: _require_env(env, key, aliases) for key, aliases in CREDENTIAL_KEYS.items()
        }

        base_url = _clean_url(env.get("GRANOT_BASE") or DEFAULT_BASE_URL, key="GRANOT_BASE")
        sink_raw = (env.get("GAS_ENDPOINT") or "").strip()
        sink_url = _clean_url(sink_raw, key="GAS_ENDPOINT") if sink_raw else ""

        headless = _parse_bool(env.get("HEADLESS") or "true", key="HEADLESS")
        debug = _parse_bool(env.get("DEBUG") or "false", key="DEBUG")
        retries = _parse_int(env.get("RETRIES") or str(DEFAULT_RETRIES), key="RETRIES", minimum=1)
        net_idle_ms = _parse_int(
            env.get("NET_IDLE_MS") or str(DEFAULT_NET_IDLE_MS), key="NET_IDLE_MS", minimum=0
        )
        pipeline_timezone = _clean_timezone(
            env.get("PIPELINE_TIMEZONE") or DEFAULT_TIMEZONE, key="PIPELINE_TIMEZONE"
        )

        return cls(
            base_url=base_url,
            sink_url=sink_url,
            network_id=secrets["GRANOT_NET_ID"],
            network_password=secrets["GRANOT_NET_PASS"],
            user_id=secrets["GRANOT_USER"],
            user_password=secrets["GRANOT_PASS"],
            headless=headless,
            retries=retries,
            net_idle_ms=net_idle_ms,
            debug=debug,
            pipeline_timezone=pipeline_timezone,
            json_log_file=(env.get("JSON_LOG_FILE") or "").strip(),
            chrome_executable=(env.get("CHROME_EXECUTABLE") or "").strip(),
        )
