# tests/unit/capture/test_useragent.py
"""Tests for heuristic user-agent parsing."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from altary.capture.useragent import UNKNOWN, UserAgentInfo, parse_user_agent

WINDOWS_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MAC_FIREFOX = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0"
IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
)
IPAD_SAFARI = (
    "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
PIXEL_CHROME = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36"
)
SAMSUNG_CHROME = (
    "Mozilla/5.0 (Linux; Android 13; SM-S911B) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
LINUX_FIREFOX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


@pytest.mark.parametrize(
    ("ua", "expected"),
    [
        (WINDOWS_CHROME, UserAgentInfo(os="Windows 10", browser="Chrome 120.0", device="PC")),
        (MAC_FIREFOX, UserAgentInfo(os="macOS 10.15", browser="Firefox 121.0", device="PC")),
        (IPHONE_SAFARI, UserAgentInfo(os="iOS 17.1", browser="Safari 17.1", device="iPhone")),
        (IPAD_SAFARI, UserAgentInfo(os="iOS 16.6", browser="Safari 16.6", device="iPad")),
        (PIXEL_CHROME, UserAgentInfo(os="Android 14", browser="Chrome 120.0", device="Pixel 8")),
        (SAMSUNG_CHROME, UserAgentInfo(os="Android 13", browser="Chrome 120.0", device="Samsung SM-S911B")),
        (LINUX_FIREFOX, UserAgentInfo(os="Linux", browser="Firefox 121.0", device="PC")),
    ],
)
def test_known_user_agents(ua: str, expected: UserAgentInfo) -> None:
    assert parse_user_agent(ua) == expected


@pytest.mark.parametrize("ua", [None, ""])
def test_missing_user_agent_is_unknown(ua: str | None) -> None:
    assert parse_user_agent(ua) == UserAgentInfo(os=UNKNOWN, browser=UNKNOWN, device=UNKNOWN)


def test_unrecognised_user_agent() -> None:
    info = parse_user_agent("curl/8.4.0")

    assert info.os == UNKNOWN
    assert info.browser == UNKNOWN


def test_older_windows_version_name() -> None:
    assert parse_user_agent("Mozilla/5.0 (Windows NT 6.1; WOW64)").os == "Windows 7"


@given(ua=st.text(max_size=300))
def test_never_raises_and_labels_non_empty(ua: str) -> None:
    info = parse_user_agent(ua)

    assert info.os and info.browser and info.device
