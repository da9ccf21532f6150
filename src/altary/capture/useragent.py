# src/altary/capture/useragent.py
"""Heuristic user-agent parsing.

This is deliberately a small fixed table, not a full UA database: the
collector only needs OS family, browser family and a coarse device class.
Anything unrecognised is reported as "Unknown".
"""

from __future__ import annotations

import re
from dataclasses import dataclass

UNKNOWN = "Unknown"

# Windows NT kernel version -> marketing name
_WINDOWS_VERSIONS: dict[str, str] = {
    "10.0": "10",
    "6.3": "8.1",
    "6.2": "8",
    "6.1": "7",
    "6.0": "Vista",
    "5.1": "XP",
}

# Order matters: iOS and Android UAs also contain "Mac OS X" / "Linux".
_OS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iOS", re.compile(r"(?:iPhone|CPU) OS (\d+(?:_\d+)*)")),
    ("Android", re.compile(r"Android(?: (\d+(?:\.\d+)*))?")),
    ("Windows", re.compile(r"Windows NT (\d+\.\d+)")),
    ("macOS", re.compile(r"Mac OS X (\d+(?:[._]\d+)*)")),
    ("Linux", re.compile(r"Linux")),
)

# Order matters: Chrome UAs also contain "Safari/".
_BROWSER_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Firefox", re.compile(r"(?:Firefox|FxiOS)/(\d+(?:\.\d+)?)")),
    ("Chrome", re.compile(r"(?:Chrome|CriOS)/(\d+(?:\.\d+)?)")),
    ("Safari", re.compile(r"Version/(\d+(?:\.\d+)?).*Safari/")),
)

_PIXEL = re.compile(r"(Pixel(?: [\w]+)*?)(?:\)|;| Build)")
_SAMSUNG = re.compile(r"\b(SM-[A-Z0-9]+)")


@dataclass(frozen=True, slots=True)
class UserAgentInfo:
    """Parsed user-agent labels."""

    os: str = UNKNOWN
    browser: str = UNKNOWN
    device: str = UNKNOWN


def _parse_os(ua: str) -> str:
    for family, pattern in _OS_PATTERNS:
        match = pattern.search(ua)
        if match is None:
            continue
        version = match.group(1) if match.groups() else None
        if not version:
            return family
        if family == "Windows":
            return f"Windows {_WINDOWS_VERSIONS.get(version, version)}"
        return f"{family} {version.replace('_', '.')}"
    return UNKNOWN


def _parse_browser(ua: str) -> str:
    for family, pattern in _BROWSER_PATTERNS:
        match = pattern.search(ua)
        if match is not None:
            return f"{family} {match.group(1)}"
    return UNKNOWN


def _parse_device(ua: str) -> str:
    if "iPhone" in ua:
        return "iPhone"
    if "iPad" in ua:
        return "iPad"
    pixel = _PIXEL.search(ua)
    if pixel is not None:
        return pixel.group(1)
    samsung = _SAMSUNG.search(ua)
    if samsung is not None:
        return f"Samsung {samsung.group(1)}"
    if "Mobile" in ua or "Android" in ua:
        return "Mobile"
    return "PC"


def parse_user_agent(ua: str | None) -> UserAgentInfo:
    """Parse a raw user-agent string into OS, browser and device labels.

    Args:
        ua: Raw User-Agent header value. Empty or None yields all-Unknown.

    Returns:
        UserAgentInfo with "Unknown" for any category no pattern matched.

    Example:
        >>> parse_user_agent(
        ...     "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        ...     "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ... )
        UserAgentInfo(os='Windows 10', browser='Chrome 120.0', device='PC')
    """
    if not ua:
        return UserAgentInfo()
    return UserAgentInfo(
        os=_parse_os(ua),
        browser=_parse_browser(ua),
        device=_parse_device(ua),
    )
