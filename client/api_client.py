"""
Async client for the FollowTrain API.

`FollowTrainClient` wraps the HTTP routes. Reads return parsed `Train` /
`Profile` models; writes return a `SaveResult`, which makes an unsaved train
explicit (`saved=False`) when the server could not be reached or failed,
instead of letting a local copy pass for the server's state. Rejections the
user can act on (invalid input, duplicate participant, unknown train,
concurrent update) are raised as the matching `FollowTrainError`.

`TrainSession` holds the trains a consumer has loaded. It is created by the
consumer, passed to whatever needs it and cleared when the consumer is done
with it (or on leaving its `async with` block).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from core.exceptions import (
    ConcurrentUpdateError,
    DuplicateParticipantError,
    FollowTrainError,
    InvalidInputError,
    TrainNotFoundError,
)
from core.models import Profile, Train, TrainStats
from core.platforms import Platform, deep_link

logger = logging.getLogger(__name__)


class ApiRequestError(FollowTrainError):
    """Any API failure without a more specific exception type"""

    def __init__(self, status_code: int, error_code: str, message: str):
        super().__init__(message, error_code, {"status_code": status_code})
        self.status_code = status_code


@dataclass
class SaveResult:
    train: Optional[Train]
    saved: bool
    error: Optional[str] = None


def share_link(origin: str, train_id: str) -> str:
    return f"{origin}?train={train_id}"


def profile_link(platform: Platform, username: str) -> str:
    return deep_link(platform, username)


def _error_from_response(status: int, payload: Any, train_id: Optional[str]) -> FollowTrainError:
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return ApiRequestError(status, f"HTTP_{status}", f"Request failed with HTTP {status}")

    code = error.get("code", f"HTTP_{status}")
    message = error.get("message", "")
    details = error.get("details") or {}

    if code == "TRAIN_NOT_FOUND":
        return TrainNotFoundError(details.get("train_id", train_id or ""))
    if code == "DUPLICATE_PARTICIPANT":
        return DuplicateParticipantError(
            details.get("train_id", train_id or ""), details.get("username", "")
        )
    if code == "CONCURRENT_UPDATE":
        return ConcurrentUpdateError(details.get("train_id", train_id or ""))
    if code == "INVALID_INPUT":
        return InvalidInputError(message) if message else InvalidInputError()
    return ApiRequestError(status, code, message)


class FollowTrainClient:
    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        train_id: Optional[str] = None,
    ) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, f"{self.base_url}{path}", json=json) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    # proxies answer errors with HTML
                    if response.status < 400:
                        raise
                    payload = None
                if response.status >= 400:
                    raise _error_from_response(response.status, payload, train_id)
                return payload

    async def _save(
        self, method: str, path: str, body: Dict[str, Any], train_id: Optional[str] = None
    ) -> SaveResult:
        try:
            payload = await self._request(method, path, json=body, train_id=train_id)
        except ApiRequestError as e:
            if e.status_code < 500:
                raise
            logger.warning(f"{method} {path} was not saved: {e.message}")
            return SaveResult(train=None, saved=False, error=e.message)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"{method} {path} was not saved: {e!r}")
            return SaveResult(train=None, saved=False, error=str(e) or type(e).__name__)
        return SaveResult(train=Train.model_validate(payload), saved=True)

    async def get_train(self, train_id: str) -> Train:
        payload = await self._request(
            "GET", f"/api/trains/{quote(train_id)}", train_id=train_id
        )
        return Train.model_validate(payload)

    async def get_profile(self, platform: Platform, username: str) -> Profile:
        platform = Platform(platform)
        payload = await self._request(
            "GET", f"/api/profile/{platform.value}/{quote(username)}"
        )
        return Profile.model_validate(payload)

    async def get_stats(self) -> TrainStats:
        return TrainStats.model_validate(await self._request("GET", "/api/stats"))

    async def create_train(
        self, platform: Platform, profile: str, name: Optional[str] = None
    ) -> SaveResult:
        body = {"platform": Platform(platform).value, "profile": profile}
        if name:
            body["name"] = name
        return await self._save("POST", "/api/trains/new", body)

    async def join_train(self, train_id: str, profile: str) -> SaveResult:
        return await self._save(
            "POST",
            f"/api/trains/{quote(train_id)}/join",
            {"profile": profile},
            train_id=train_id,
        )


class TrainSession:
    """Trains loaded by one consumer; only server-confirmed state is kept"""

    def __init__(self, client: FollowTrainClient):
        self.client = client
        self.trains: Dict[str, Train] = {}

    async def __aenter__(self) -> "TrainSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def get(self, train_id: str) -> Optional[Train]:
        return self.trains.get(train_id)

    async def load(self, train_id: str) -> Optional[Train]:
        try:
            train = await self.client.get_train(train_id)
        except TrainNotFoundError:
            self.trains.pop(train_id, None)
            return None
        self.trains[train.id] = train
        return train

    async def create(
        self, platform: Platform, profile: str, name: Optional[str] = None
    ) -> SaveResult:
        result = await self.client.create_train(platform, profile, name)
        self._remember(result)
        return result

    async def join(self, train_id: str, profile: str) -> SaveResult:
        try:
            result = await self.client.join_train(train_id, profile)
        except TrainNotFoundError:
            self.trains.pop(train_id, None)
            raise
        self._remember(result)
        return result

    def clear(self) -> None:
        self.trains.clear()

    def _remember(self, result: SaveResult) -> None:
        if result.saved and result.train is not None:
            self.trains[result.train.id] = result.train
