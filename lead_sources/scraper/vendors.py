from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Pattern, Tuple

VENDOR_ORDER: Tuple[str, ...] = (
    "Raw",
    "Em Semi",
    "Mover Matcher",
    "MM Inbound",
    "MF Paper",
    "MF Calls",
    "Semi AH",
    "1-800-BOOK",
)

SOURCE_TO_VENDOR: Dict[str, str] = {
    "Equate Media - Raw Calls": "Raw",
    "Equate Media - Raw Calls - Email": "Em Semi",
    "Equate Media - Raw Calls — Email": "Em Semi",
    "EM Semi": "Em Semi",
    "Mover Matcher": "Mover Matcher",
    "MM Inbound": "MM Inbound",
    "MF Paper": "MF Paper",
    "MF Calls": "MF Calls",
    "Semi AH": "Semi AH",
    "1-800-BOOK": "1-800-BOOK",
}


@dataclass(frozen=True)
class FallbackRule:
    vendor: str
    patterns: Tuple[Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return all(pattern.search(text) for pattern in self.patterns)


def _rule(vendor: str, *patterns: str) -> FallbackRule:
    return FallbackRule(vendor=vendor, patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns))


# Order matters: the email variant must be tested before plain raw calls.
FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    _rule("Em Semi", r"equate media.*raw", r"email"),
    _rule("Raw", r"equate media.*raw"),
    _rule("Mover Matcher", r"mover\s*matcher"),
    _rule("MM Inbound", r"mm\s*inbound"),
    _rule("MF Paper", r"mf\s*paper"),
    _rule("MF Calls", r"mf\s*calls"),
    _rule("Semi AH", r"semi\s*ah"),
    _rule("1-800-BOOK", r"1[\s\-]?800[\s\-]?book"),
)


def normalize_label(text: str | None) -> str:
    if not text:
        return ""
    return text.replace("\u00a0", " ").strip()


def empty_vendor_counts() -> Dict[str, int]:
    return {vendor: 0 for vendor in VENDOR_ORDER}


def classify_source(label: str | None) -> str | None:
    """Map a detail row's free-text source label to a vendor bucket.

    Exact table first, then the ordered fallback rules; ``None`` means the
    row is not counted.
    """

    text = normalize_label(label)
    if not text:
        return None

    exact = SOURCE_TO_VENDOR.get(text)
    if exact:
        return exact

    for rule in FALLBACK_RULES:
        if rule.matches(text):
            return rule.vendor
    return None
