"""
Supported social platforms.

Platforms are a flat data table rather than a class hierarchy: each entry
describes how to recognise a profile URL, which characters a username may
contain and how to link back to the profile. Adding a platform means adding a
`Platform` member and one `PlatformConfig` row.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Pattern


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    TELEGRAM = "telegram"


@dataclass(frozen=True)
class PlatformConfig:
    platform: Platform
    name: str
    url_pattern: Pattern[str]
    allowed_chars: str  # body of a regex character class
    deep_link_template: str
    placeholder: str

    def deep_link(self, username: str) -> str:
        return "https://" + self.deep_link_template.format(username=username)


def _url(host: str, allowed_chars: str) -> Pattern[str]:
    return re.compile(rf"(?:https?://)?(?:www\.)?{host}([{allowed_chars}]+)")


PLATFORMS: Dict[Platform, PlatformConfig] = {
    Platform.INSTAGRAM: PlatformConfig(
        platform=Platform.INSTAGRAM,
        name="Instagram",
        url_pattern=_url(r"instagram\.com/", "A-Za-z0-9_."),
        allowed_chars="A-Za-z0-9_.",
        deep_link_template="instagram.com/{username}",
        placeholder="instagram.com/username or @username",
    ),
    Platform.TIKTOK: PlatformConfig(
        platform=Platform.TIKTOK,
        name="TikTok",
        url_pattern=_url(r"tiktok\.com/@", "A-Za-z0-9_."),
        allowed_chars="A-Za-z0-9_.",
        deep_link_template="tiktok.com/@{username}",
        placeholder="tiktok.com/@username or @username",
    ),
    Platform.TWITTER: PlatformConfig(
        platform=Platform.TWITTER,
        name="Twitter/X",
        url_pattern=_url(r"(?:twitter\.com|x\.com)/", "A-Za-z0-9_"),
        allowed_chars="A-Za-z0-9_",
        deep_link_template="x.com/{username}",
        placeholder="x.com/username or @username",
    ),
    Platform.LINKEDIN: PlatformConfig(
        platform=Platform.LINKEDIN,
        name="LinkedIn",
        url_pattern=_url(r"linkedin\.com/in/", "A-Za-z0-9-"),
        allowed_chars="A-Za-z0-9-",
        deep_link_template="linkedin.com/in/{username}",
        placeholder="linkedin.com/in/username",
    ),
    Platform.FACEBOOK: PlatformConfig(
        platform=Platform.FACEBOOK,
        name="Facebook",
        url_pattern=_url(r"facebook\.com/", "A-Za-z0-9."),
        allowed_chars="A-Za-z0-9.",
        deep_link_template="facebook.com/{username}",
        placeholder="facebook.com/username",
    ),
    Platform.TELEGRAM: PlatformConfig(
        platform=Platform.TELEGRAM,
        name="Telegram",
        url_pattern=_url(r"t\.me/", "A-Za-z0-9_"),
        allowed_chars="A-Za-z0-9_",
        deep_link_template="t.me/{username}",
        placeholder="t.me/username or @username",
    ),
}


def get_platform_config(platform) -> PlatformConfig:
    """Look up a platform's row; accepts a `Platform` or its string value"""
    return PLATFORMS[Platform(platform)]


def deep_link(platform, username: str) -> str:
    return get_platform_config(platform).deep_link(username)
