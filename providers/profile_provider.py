"""
Profile Provider Classes

Each provider knows how to obtain profile metadata for one source. Live
providers call a platform's profile-lookup API with a pre-configured
credential; `FallbackProfileProvider` synthesises a profile locally and
always succeeds.

Live providers return None when they have no credential to work with and raise
`UpstreamProfileError` for every other failure (non-2xx status, unusable
payload). Transport errors and timeouts from aiohttp are left to propagate;
the resolver treats all of them the same way.
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from core.exceptions import UpstreamProfileError
from core.models import Profile
from core.platforms import Platform, get_platform_config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
MAX_FALLBACK_FOLLOWERS = 9999


def placeholder_avatar_url(username: str) -> str:
    """Generated placeholder image keyed by username"""
    return f"https://ui-avatars.com/api/?name={quote(username)}&background=random"


class ProfileProvider(ABC):
    """Abstract base class for live profile providers"""

    def __init__(
        self,
        credential: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.credential = credential
        self.timeout_seconds = timeout_seconds

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Platform served by this provider"""

    @property
    def source_name(self) -> str:
        return f"{self.platform.value}_api"

    @property
    def is_configured(self) -> bool:
        return bool(self.credential)

    async def fetch_profile(self, username: str) -> Optional[Profile]:
        """Look up `username` live. Returns None when no credential is configured."""
        if not self.is_configured:
            logger.debug(f"{self.source_name} not configured, skipping @{username}")
            return None

        payload = await self._get_json(username)
        try:
            return self._parse(username, payload)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamProfileError(
                self.platform.value, username, f"malformed payload: {e!r}"
            ) from e

    async def _get_json(self, username: str) -> Dict[str, Any]:
        url, params, headers = self._build_request(username)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, params=params, headers=headers) as response:
                if response.status != 200:
                    raise UpstreamProfileError(
                        self.platform.value, username, f"HTTP {response.status}"
                    )
                payload = await response.json()

        if not isinstance(payload, dict):
            raise UpstreamProfileError(
                self.platform.value, username, "response is not a JSON object"
            )
        return payload

    @abstractmethod
    def _build_request(self, username: str):
        """Return (url, params, headers) for the lookup request"""

    @abstractmethod
    def _parse(self, username: str, payload: Dict[str, Any]) -> Profile:
        """Convert the platform payload into a Profile"""


class InstagramProfileProvider(ProfileProvider):
    """Instagram Graph API lookup"""

    API_URL = "https://graph.instagram.com/{username}"
    FIELDS = "id,username,account_type,media_count"

    @property
    def platform(self) -> Platform:
        return Platform.INSTAGRAM

    def _build_request(self, username: str):
        return (
            self.API_URL.format(username=quote(username)),
            {"fields": self.FIELDS, "access_token": self.credential},
            {},
        )

    def _parse(self, username: str, payload: Dict[str, Any]) -> Profile:
        handle = payload["username"]
        return Profile(
            username=handle,
            display_name=handle,
            bio=payload.get("biography") or "",
            avatar=payload.get("profile_picture_url") or placeholder_avatar_url(username),
            followers=int(payload.get("followers_count") or 0),
            is_verified=bool(payload.get("is_verified", False)),
        )


class TwitterProfileProvider(ProfileProvider):
    """Twitter/X API v2 user lookup"""

    API_URL = "https://api.twitter.com/2/users/by/username/{username}"
    USER_FIELDS = "description,public_metrics,profile_image_url,verified"

    @property
    def platform(self) -> Platform:
        return Platform.TWITTER

    def _build_request(self, username: str):
        return (
            self.API_URL.format(username=quote(username)),
            {"user.fields": self.USER_FIELDS},
            {"Authorization": f"Bearer {self.credential}"},
        )

    def _parse(self, username: str, payload: Dict[str, Any]) -> Profile:
        user = payload["data"]
        metrics = user.get("public_metrics") or {}
        return Profile(
            username=user["username"],
            display_name=user["name"],
            bio=user.get("description") or "",
            avatar=user.get("profile_image_url") or placeholder_avatar_url(username),
            followers=int(metrics.get("followers_count") or 0),
            is_verified=bool(user.get("verified", False)),
        )


class LinkedInProfileProvider(ProfileProvider):
    """LinkedIn people lookup by vanity name"""

    API_URL = "https://api.linkedin.com/v2/people/(vanityName:{username})"

    @property
    def platform(self) -> Platform:
        return Platform.LINKEDIN

    def _build_request(self, username: str):
        return (
            self.API_URL.format(username=quote(username)),
            None,
            {
                "Authorization": f"Bearer {self.credential}",
                "cache-control": "no-cache",
                "X-Restli-Protocol-Version": "2.0.0",
            },
        )

    def _parse(self, username: str, payload: Dict[str, Any]) -> Profile:
        display_name = f"{payload['localizedFirstName']} {payload['localizedLastName']}"
        picture = payload.get("profilePicture") or {}
        return Profile(
            username=username,
            display_name=display_name.strip(),
            bio=payload.get("headline") or "",
            avatar=picture.get("displayImage") or placeholder_avatar_url(username),
            # the basic people API exposes no follower count
            followers=0,
            is_verified=False,
        )


class FallbackProfileProvider:
    """Generate a placeholder profile (always works)"""

    source_name = "fallback"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def build_profile(self, username: str, platform: Platform) -> Profile:
        platform_name = get_platform_config(platform).name
        return Profile(
            username=username,
            display_name=username[:1].upper() + username[1:],
            bio=f"{platform_name} user",
            avatar=placeholder_avatar_url(username),
            # not stable across calls
            followers=self.rng.randint(0, MAX_FALLBACK_FOLLOWERS),
            is_verified=False,
        )
