"""
Unit tests for Profile Providers

Live providers are exercised against a mocked aiohttp session.
"""
import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.exceptions import UpstreamProfileError
from core.platforms import Platform
from providers.profile_provider import (
    FallbackProfileProvider,
    InstagramProfileProvider,
    LinkedInProfileProvider,
    TwitterProfileProvider,
    placeholder_avatar_url,
)


def mock_session(mock_session_cls, status=200, payload=None):
    """Wire `patch('aiohttp.ClientSession')` to return a response; returns the session"""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    session = MagicMock()
    mock_session_cls.return_value.__aenter__ = AsyncMock(return_value=session)
    mock_session_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    session.get.return_value.__aenter__ = AsyncMock(return_value=response)
    session.get.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


class TestTwitterProfileProvider:
    @pytest.fixture
    def provider(self):
        return TwitterProfileProvider("test-bearer", timeout_seconds=2)

    def test_properties(self, provider):
        assert provider.platform == Platform.TWITTER
        assert provider.source_name == "twitter_api"
        assert provider.is_configured

    @pytest.mark.asyncio
    async def test_not_configured_returns_none(self):
        provider = TwitterProfileProvider(None)

        with patch("aiohttp.ClientSession") as mock_session_cls:
            result = await provider.fetch_profile("alice")

        assert result is None
        mock_session_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_profile_success(self, provider):
        payload = {
            "data": {
                "username": "alice",
                "name": "Alice A.",
                "description": "Hello",
                "profile_image_url": "https://pbs.example.com/alice.jpg",
                "public_metrics": {"followers_count": 1234},
                "verified": True,
            }
        }

        with patch("aiohttp.ClientSession") as mock_session_cls:
            session = mock_session(mock_session_cls, payload=payload)
            result = await provider.fetch_profile("alice")

        assert result.username == "alice"
        assert result.display_name == "Alice A."
        assert result.bio == "Hello"
        assert result.avatar == "https://pbs.example.com/alice.jpg"
        assert result.followers == 1234
        assert result.is_verified is True

        url = session.get.call_args.args[0]
        headers = session.get.call_args.kwargs["headers"]
        assert url == "https://api.twitter.com/2/users/by/username/alice"
        assert headers["Authorization"] == "Bearer test-bearer"

    @pytest.mark.asyncio
    async def test_missing_optional_fields_use_defaults(self, provider):
        payload = {"data": {"username": "alice", "name": "Alice"}}

        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session(mock_session_cls, payload=payload)
            result = await provider.fetch_profile("alice")

        assert result.bio == ""
        assert result.avatar == placeholder_avatar_url("alice")
        assert result.followers == 0
        assert result.is_verified is False

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self, provider):
        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session(mock_session_cls, status=401, payload={"title": "Unauthorized"})

            with pytest.raises(UpstreamProfileError) as exc_info:
                await provider.fetch_profile("alice")

        assert exc_info.value.details["reason"] == "HTTP 401"

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self, provider):
        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session(mock_session_cls, payload={"errors": [{"title": "Not Found"}]})

            with pytest.raises(UpstreamProfileError):
                await provider.fetch_profile("ghost")

    @pytest.mark.asyncio
    async def test_non_object_payload_raises(self, provider):
        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session(mock_session_cls, payload=["not", "an", "object"])

            with pytest.raises(UpstreamProfileError):
                await provider.fetch_profile("alice")


class TestInstagramProfileProvider:
    @pytest.mark.asyncio
    async def test_fetch_profile_success(self):
        provider = InstagramProfileProvider("ig-token")
        payload = {"id": "1", "username": "bob_99", "account_type": "PERSONAL"}

        with patch("aiohttp.ClientSession") as mock_session_cls:
            session = mock_session(mock_session_cls, payload=payload)
            result = await provider.fetch_profile("bob_99")

        assert result.username == "bob_99"
        assert result.display_name == "bob_99"
        assert result.avatar == placeholder_avatar_url("bob_99")
        assert session.get.call_args.kwargs["params"]["access_token"] == "ig-token"


class TestLinkedInProfileProvider:
    @pytest.mark.asyncio
    async def test_fetch_profile_success(self):
        provider = LinkedInProfileProvider("li-token")
        payload = {
            "localizedFirstName": "Jane",
            "localizedLastName": "Doe",
            "headline": "Engineer",
        }

        with patch("aiohttp.ClientSession") as mock_session_cls:
            session = mock_session(mock_session_cls, payload=payload)
            result = await provider.fetch_profile("jane-doe")

        assert result.username == "jane-doe"
        assert result.display_name == "Jane Doe"
        assert result.bio == "Engineer"
        assert result.followers == 0
        assert session.get.call_args.kwargs["headers"]["X-Restli-Protocol-Version"] == "2.0.0"

    @pytest.mark.asyncio
    async def test_missing_name_raises(self):
        provider = LinkedInProfileProvider("li-token")

        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session(mock_session_cls, payload={"headline": "Engineer"})

            with pytest.raises(UpstreamProfileError):
                await provider.fetch_profile("jane-doe")


class TestFallbackProfileProvider:
    """Fallback provider (should always work)"""

    @pytest.fixture
    def provider(self):
        return FallbackProfileProvider(rng=random.Random(7))

    def test_profile_shape(self, provider):
        profile = provider.build_profile("alice", Platform.TIKTOK)

        assert profile.username == "alice"
        assert profile.display_name == "Alice"
        assert profile.bio == "TikTok user"
        assert profile.avatar == "https://ui-avatars.com/api/?name=alice&background=random"
        assert 0 <= profile.followers <= 9999
        assert profile.is_verified is False

    def test_uses_platform_display_name(self, provider):
        assert provider.build_profile("alice", Platform.TWITTER).bio == "Twitter/X user"

    def test_display_name_keeps_rest_of_username(self, provider):
        assert provider.build_profile("bob_99", Platform.INSTAGRAM).display_name == "Bob_99"

    def test_followers_are_random(self):
        first = FallbackProfileProvider(rng=random.Random(1)).build_profile("a", Platform.TIKTOK)
        second = FallbackProfileProvider(rng=random.Random(1)).build_profile("a", Platform.TIKTOK)

        # same seed, same number; callers still must not rely on it
        assert first.followers == second.followers
