"""
Profile Resolution Service.

`ProfileResolver` answers "what does this user's profile look like?" for any
supported platform. Platforms with a live integration are tried first; any
failure there (missing credential, transport error, timeout, non-2xx status,
malformed payload) is logged and absorbed, and the resolver falls back to a
generated placeholder profile. `resolve` therefore never raises for upstream
problems, and callers cannot tell a live profile from a fallback one.
"""

import logging
from typing import Dict, Iterable, Optional

from core.config import Settings, get_settings
from core.models import Profile
from core.platforms import Platform
from providers.profile_provider import (
    FallbackProfileProvider,
    InstagramProfileProvider,
    LinkedInProfileProvider,
    ProfileProvider,
    TwitterProfileProvider,
)

logger = logging.getLogger(__name__)


def default_providers(settings: Settings) -> Iterable[ProfileProvider]:
    timeout = settings.profile_lookup_timeout
    return [
        InstagramProfileProvider(settings.instagram_access_token, timeout),
        TwitterProfileProvider(settings.twitter_bearer_token, timeout),
        LinkedInProfileProvider(settings.linkedin_access_token, timeout),
    ]


class ProfileResolver:
    """Live lookup with a deterministic fallback"""

    def __init__(
        self,
        providers: Optional[Iterable[ProfileProvider]] = None,
        fallback: Optional[FallbackProfileProvider] = None,
        settings: Optional[Settings] = None,
    ):
        if providers is None:
            providers = default_providers(settings or get_settings())
        self.providers: Dict[Platform, ProfileProvider] = {
            provider.platform: provider for provider in providers
        }
        self.fallback = fallback or FallbackProfileProvider()

    async def resolve(self, username: str, platform: Platform) -> Profile:
        platform = Platform(platform)
        provider = self.providers.get(platform)

        if provider is not None:
            try:
                profile = await provider.fetch_profile(username)
                if profile is not None:
                    logger.info(
                        f"Profile for @{username} obtained from {provider.source_name}"
                    )
                    return profile
            except Exception as e:
                logger.warning(
                    f"Live lookup failed for @{username} on {platform.value}, using fallback: {e!r}",
                    extra={"platform": platform.value, "error_type": type(e).__name__},
                )

        logger.debug(f"Generating fallback profile for @{username} on {platform.value}")
        return self.fallback.build_profile(username, platform)
