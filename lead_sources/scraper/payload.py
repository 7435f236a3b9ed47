from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, TextIO

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lead_sources.common.date_utils import WeekRange
from lead_sources.scraper.json_logger import JsonLogger, log_event
from lead_sources.scraper.vendors import VENDOR_ORDER

SINK_TIMEOUT_SECONDS = 30


class Representative(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(alias="rep", min_length=1)
    vendors: Dict[str, int]

    @field_validator("vendors")
    @classmethod
    def _all_vendors_present(cls, value: Dict[str, int]) -> Dict[str, int]:
        if set(value) != set(VENDOR_ORDER):
            raise ValueError(f"vendor keys must be exactly {list(VENDOR_ORDER)}")
        if any(count < 0 for count in value.values()):
            raise ValueError("vendor counts cannot be negative")
        return {vendor: value[vendor] for vendor in VENDOR_ORDER}


class Payload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    scraped_at: datetime
    rep_names: List[str] = Field(alias="repNames")
    reps: List[Representative]

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def build_payload(
    week: WeekRange,
    reps: Sequence[Representative],
    *,
    scraped_at: datetime | None = None,
) -> Payload:
    ordered = list(reps)
    return Payload(
        date=week.label,
        scraped_at=scraped_at or datetime.now(timezone.utc),
        rep_names=[rep.name for rep in ordered],
        reps=ordered,
    )


async def deliver_payload(
    payload: Payload,
    *,
    sink_url: str,
    logger: JsonLogger,
    stream: TextIO | None = None,
    timeout_seconds: float = SINK_TIMEOUT_SECONDS,
) -> None:
    """POST the payload to the collector, or print it when no sink is set."""

    body = payload.to_wire()
    if not sink_url:
        out = stream or sys.stdout
        out.write(json.dumps(body, indent=2, ensure_ascii=False) + "\n")
        out.flush()
        log_event(logger=logger, phase="deliver", message="Payload printed", reps=len(payload.reps))
        return

    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(sink_url, json=body) as resp:
            text = await resp.text()
            if resp.status >= 400:
                logger.error(phase="deliver", message="Collector rejected payload", status_code=resp.status, response=text)
                resp.raise_for_status()
            log_event(
                logger=logger,
                phase="deliver",
                message="Payload posted",
                status_code=resp.status,
                response=text,
                reps=len(payload.reps),
            )
