"""
Train Service.

Orchestrates the only two ways a train changes: it is created with a single
host participant, and participants are appended to it. Usernames are
normalised per platform, profiles come from the `ProfileResolver`, and every
write goes through the `TrainStore`.

Membership invariants enforced here:
- the first participant is the host, and no one else is;
- usernames are unique within a train, compared case-insensitively;
- the participant list is never empty and only ever grows at the end.

Joins are protected against lost updates by the store's version check; on a
conflict the join re-reads the train and tries again a bounded number of times.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from core.exceptions import (
    ConcurrentUpdateError,
    DuplicateParticipantError,
    InvalidInputError,
    PersistenceError,
)
from core.models import Participant, Profile, Train, TrainCreate, utcnow
from core.platforms import Platform, get_platform_config
from core.validation import require_username
from services.profile_service import ProfileResolver
from services.train_store import TrainStore

logger = logging.getLogger(__name__)

TRAIN_TTL = timedelta(days=7)
TRAIN_ID_LENGTH = 6
TRAIN_ID_ALPHABET = string.ascii_uppercase + string.digits
MAX_ID_ATTEMPTS = 10
MAX_JOIN_ATTEMPTS = 3


def generate_train_id(length: int = TRAIN_ID_LENGTH) -> str:
    return "".join(secrets.choice(TRAIN_ID_ALPHABET) for _ in range(length))


def default_train_name(platform: Platform) -> str:
    return f"{get_platform_config(platform).name} Train"


def _key(username: str) -> str:
    return username.lower()


def validate_membership(participants: List[Participant]) -> None:
    """Raise InvalidInputError unless the list satisfies the membership invariants"""
    if not participants:
        raise InvalidInputError("A train needs at least one participant", "participants")
    if not participants[0].is_host:
        raise InvalidInputError("The first participant must be the host", "participants")
    if any(p.is_host for p in participants[1:]):
        raise InvalidInputError("Only the first participant can be the host", "participants")

    seen = set()
    for participant in participants:
        key = _key(participant.username)
        if key in seen:
            raise InvalidInputError(
                f"Duplicate participant: {participant.username}", "participants"
            )
        seen.add(key)


class TrainService:
    def __init__(
        self,
        store: TrainStore,
        resolver: ProfileResolver,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_train_id,
    ):
        self.store = store
        self.resolver = resolver
        self.clock = clock
        self.id_factory = id_factory

    async def create_train(
        self, platform: Platform, raw_input: str, name: Optional[str] = None
    ) -> Train:
        platform = Platform(platform)
        username = require_username(raw_input, platform)
        profile = await self._resolve(username, platform)

        now = self.clock()
        train = Train(
            id=await self._new_train_id(),
            name=(name or "").strip() or default_train_name(platform),
            platform=platform,
            participants=[Participant.from_profile(profile, is_host=True, joined_at=now)],
            created_at=now,
            updated_at=now,
            expires_at=now + TRAIN_TTL,
        )

        created = await self.store.create(train)
        logger.info(
            f"Created train {created.id} on {platform.value} hosted by @{username}",
            extra={"train_id": created.id, "platform": platform.value},
        )
        return created

    async def join_train(self, train_id: str, raw_input: str) -> Train:
        train = await self.store.get(train_id)
        username = require_username(raw_input, train.platform)
        self._ensure_not_member(train, username)

        profile = await self._resolve(username, train.platform)

        for attempt in range(1, MAX_JOIN_ATTEMPTS + 1):
            participant = Participant.from_profile(
                profile, is_host=False, joined_at=self.clock()
            )
            try:
                updated = await self.store.update(
                    train_id,
                    {"participants": [*train.participants, participant]},
                    expected_version=train.version,
                )
            except ConcurrentUpdateError:
                logger.warning(
                    f"Train {train_id} changed while @{username} was joining "
                    f"(attempt {attempt}/{MAX_JOIN_ATTEMPTS})"
                )
                train = await self.store.get(train_id)
                self._ensure_not_member(train, username)
                continue

            logger.info(
                f"@{username} joined train {train_id}",
                extra={"train_id": train_id, "participants": len(updated.participants)},
            )
            return updated

        raise ConcurrentUpdateError(train_id)

    async def save_client_train(self, payload: TrainCreate) -> Train:
        """
        Persist a train built by the client. Timestamps are assigned here so the
        seven-day lifetime cannot be overridden.
        """
        validate_membership(payload.participants)
        now = self.clock()
        train = Train(
            id=payload.id,
            name=(payload.name or "").strip() or default_train_name(payload.platform),
            platform=payload.platform,
            participants=payload.participants,
            created_at=now,
            updated_at=now,
            expires_at=now + TRAIN_TTL,
        )
        created = await self.store.create(train)
        logger.info(f"Stored client-built train {created.id}")
        return created

    async def replace_participants(
        self, train_id: str, participants: List[Participant]
    ) -> Train:
        """
        Store a full participant list sent by a client. The stored list must be
        an ordered prefix of the new one; anything else means the client worked
        from a stale copy.
        """
        train = await self.store.get(train_id)
        validate_membership(participants)

        current = [_key(p.username) for p in train.participants]
        proposed = [_key(p.username) for p in participants]
        if proposed[: len(current)] != current:
            raise ConcurrentUpdateError(train_id)

        return await self.store.update(
            train_id, {"participants": participants}, expected_version=train.version
        )

    async def get_train(self, train_id: str) -> Train:
        return await self.store.get(train_id)

    async def _resolve(self, username: str, platform: Platform) -> Profile:
        profile = await self.resolver.resolve(username, platform)
        # membership is keyed on the handle the user entered, not the one a
        # live lookup reports
        if profile.username != username:
            logger.info(
                f"{platform.value} reported @{profile.username} for @{username}, keeping @{username}"
            )
            profile = profile.model_copy(update={"username": username})
        return profile

    def _ensure_not_member(self, train: Train, username: str) -> None:
        key = _key(username)
        if any(_key(p.username) == key for p in train.participants):
            logger.info(f"@{username} is already on train {train.id}")
            raise DuplicateParticipantError(train.id, username)

    async def _new_train_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self.id_factory()
            if not await self.store.exists(candidate):
                return candidate
        raise PersistenceError("create", "could not allocate a unique train id")
