"""
Platform classification by URL host
"""

from enum import Enum
from typing import List, Tuple
from urllib.parse import urlparse


class Platform(str, Enum):
    """Source platform of a media URL"""
    YOUTUBE = "YouTube"
    INSTAGRAM = "Instagram"
    FACEBOOK = "Facebook"
    TIKTOK = "TikTok"
    TWITTER = "Twitter"
    SNAPCHAT = "Snapchat"
    LINKEDIN = "LinkedIn"
    UNKNOWN = "Unknown"


# Checked in order, first match wins
HOST_PATTERNS: List[Tuple[str, Platform]] = [
    ("youtube.com", Platform.YOUTUBE),
    ("youtu.be", Platform.YOUTUBE),
    ("youtube-nocookie.com", Platform.YOUTUBE),
    ("instagram.com", Platform.INSTAGRAM),
    ("instagr.am", Platform.INSTAGRAM),
    ("facebook.com", Platform.FACEBOOK),
    ("fb.watch", Platform.FACEBOOK),
    ("fb.com", Platform.FACEBOOK),
    ("tiktok.com", Platform.TIKTOK),
    ("twitter.com", Platform.TWITTER),
    ("x.com", Platform.TWITTER),
    ("snapchat.com", Platform.SNAPCHAT),
    ("linkedin.com", Platform.LINKEDIN),
    ("lnkd.in", Platform.LINKEDIN),
]


def _host_matches(host: str, pattern: str) -> bool:
    # "x.com" must not match "netflix.com"
    return host == pattern or host.endswith("." + pattern)


def classify(url: str) -> Platform:
    """Map a URL to its platform. Never fails; unrecognised hosts are UNKNOWN."""
    try:
        host = (urlparse(url.strip()).hostname or "").lower()
    except (AttributeError, ValueError):
        return Platform.UNKNOWN

    for pattern, platform in HOST_PATTERNS:
        if _host_matches(host, pattern):
            return platform
    return Platform.UNKNOWN
