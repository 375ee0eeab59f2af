"""Privacy-safe device metadata for sessions.

Only coarse information is kept: device type, browser and OS labels parsed
from the User-Agent, the raw User-Agent for security review, and a one-way
hash of the client IP. Raw IP addresses are never persisted.
"""

import hashlib
from typing import Mapping, NamedTuple, Optional

from pydantic import BaseModel
from user_agents import parse as parse_ua

from audit.service import client_ip_from_headers, user_agent_from_headers

UNKNOWN = "unknown"
UNKNOWN_LABEL = "Unknown"

# ua-parser reports unrecognised families as "Other"
_OTHER = "Other"


class DeviceMeta(BaseModel):
    """Device and environment captured at login."""
    device_type: str = UNKNOWN
    browser: str = UNKNOWN_LABEL
    os: str = UNKNOWN_LABEL
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class DeviceLabels(NamedTuple):
    device_type: str
    browser: str
    os: str


def parse_user_agent(user_agent: Optional[str]) -> DeviceLabels:
    """Coarse device labels from a User-Agent string.

    device_type is "mobile", "tablet", "desktop" or "unknown" (bots and
    missing headers). Browsers carry their major version only.
    """
    if not user_agent:
        return DeviceLabels(UNKNOWN, UNKNOWN_LABEL, UNKNOWN_LABEL)

    parsed = parse_ua(user_agent)
    if parsed.is_tablet:
        device_type = "tablet"
    elif parsed.is_mobile:
        device_type = "mobile"
    elif parsed.is_bot:
        device_type = UNKNOWN
    else:
        device_type = "desktop"

    browser = UNKNOWN_LABEL
    if parsed.browser.family and parsed.browser.family != _OTHER:
        browser = parsed.browser.family
        if parsed.browser.version:
            browser = f"{browser} {parsed.browser.version[0]}"

    os = UNKNOWN_LABEL
    if parsed.os.family and parsed.os.family != _OTHER:
        os = f"{parsed.os.family} {parsed.os.version_string}".strip()

    return DeviceLabels(device_type, browser, os)


def hash_ip_address(ip_address: Optional[str], salt: str) -> str:
    """One-way SHA-256 hash of ``salt:ip``; ``"unknown"`` when the IP is missing.

    The salt must be identical across instances so hashes stay comparable.
    """
    if not ip_address or ip_address == UNKNOWN:
        return UNKNOWN
    return hashlib.sha256(f"{salt}:{ip_address}".encode()).hexdigest()


def device_meta_from_headers(
    headers: Mapping[str, str],
    client_host: Optional[str] = None,
) -> DeviceMeta:
    """Build DeviceMeta from request headers.

    Labels come from the User-Agent. Uses the first X-Forwarded-For hop for
    the client IP, falling back to the socket peer address.
    """
    user_agent = user_agent_from_headers(headers)
    labels = parse_user_agent(user_agent)
    return DeviceMeta(
        device_type=labels.device_type,
        browser=labels.browser,
        os=labels.os,
        user_agent=user_agent,
        ip_address=client_ip_from_headers(headers, fallback=client_host),
    )
