"""
Unit tests for TrainStore

Runs against a throwaway SQLite file per test.
"""
from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import ConcurrentUpdateError, PersistenceError, TrainNotFoundError
from core.models import Train, utcnow
from core.platforms import Platform
from services.train_store import TrainStore


class TestCreateAndGet:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_participant_order(self, store, make_train):
        train = make_train(usernames=["host", "zed", "amy", "Mike"])

        created = await store.create(train)
        fetched = await store.get(train.id)

        assert [p.username for p in created.participants] == ["host", "zed", "amy", "Mike"]
        assert [p.username for p in fetched.participants] == ["host", "zed", "amy", "Mike"]
        assert fetched.participants[0].is_host is True
        assert fetched.platform == Platform.INSTAGRAM
        assert fetched.created_at == train.created_at
        assert fetched.expires_at == train.expires_at
        assert fetched.version == 1

    @pytest.mark.asyncio
    async def test_participant_fields_survive_persistence(self, store, make_train):
        train = make_train()

        fetched_host = (await store.create(train)).participants[0]
        original_host = train.participants[0]

        assert fetched_host == original_host

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, store):
        with pytest.raises(TrainNotFoundError):
            await store.get("NOPE00")

    @pytest.mark.asyncio
    async def test_duplicate_id_is_a_persistence_error(self, store, make_train):
        await store.create(make_train(train_id="DUP001"))

        with pytest.raises(PersistenceError):
            await store.create(make_train(train_id="DUP001"))

    @pytest.mark.asyncio
    async def test_exists_ignores_expiry(self, store, make_train, clock):
        train = await store.create(make_train(train_id="OLD001"))
        clock.now = train.expires_at + timedelta(days=30)

        assert await store.exists("OLD001") is True
        assert await store.exists("NEW001") is False


class TestExpiry:
    @pytest.mark.asyncio
    async def test_readable_just_before_expiry(self, store, make_train, clock):
        train = await store.create(make_train())
        clock.now = train.expires_at - timedelta(milliseconds=1)

        assert (await store.get(train.id)).id == train.id

    @pytest.mark.asyncio
    async def test_not_found_just_after_expiry(self, store, make_train, clock):
        train = await store.create(make_train())
        clock.now = train.expires_at + timedelta(milliseconds=1)

        with pytest.raises(TrainNotFoundError):
            await store.get(train.id)

    @pytest.mark.asyncio
    async def test_expired_looks_like_never_created(self, store, make_train, clock):
        train = await store.create(make_train())
        clock.now = train.expires_at + timedelta(seconds=1)

        with pytest.raises(TrainNotFoundError) as expired:
            await store.get(train.id)
        with pytest.raises(TrainNotFoundError) as missing:
            await store.get("NEVER1")

        assert expired.value.message == missing.value.message
        assert expired.value.status_code == missing.value.status_code


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_replaces_participants(self, store, make_train, make_participant, clock):
        train = await store.create(make_train(usernames=["host"]))
        clock.advance(minutes=5)

        updated = await store.update(
            train.id, {"participants": [*train.participants, make_participant("guest")]}
        )

        assert [p.username for p in updated.participants] == ["host", "guest"]
        assert updated.updated_at == clock()
        assert updated.created_at == train.created_at
        assert updated.version == train.version + 1

    @pytest.mark.asyncio
    async def test_update_accepts_plain_dicts(self, store, make_train, make_participant):
        train = await store.create(make_train())
        guest = make_participant("guest").model_dump(mode="json", by_alias=True)

        updated = await store.update(
            train.id, {"participants": [*train.participants, guest]}
        )

        assert updated.participants[-1].username == "guest"
        assert updated.participants[-1].is_host is False

    @pytest.mark.asyncio
    async def test_update_unknown_id(self, store, make_participant):
        with pytest.raises(TrainNotFoundError):
            await store.update("NOPE00", {"participants": [make_participant("x", True)]})

    @pytest.mark.asyncio
    async def test_update_does_not_check_expiry(self, store, make_train, make_participant, clock):
        train = await store.create(make_train())
        clock.now = train.expires_at + timedelta(days=1)

        updated = await store.update(
            train.id, {"participants": [*train.participants, make_participant("late")]}
        )

        assert len(updated.participants) == 2

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, store, make_train, make_participant):
        train = await store.create(make_train())
        await store.update(
            train.id,
            {"participants": [*train.participants, make_participant("first")]},
            expected_version=train.version,
        )

        with pytest.raises(ConcurrentUpdateError):
            await store.update(
                train.id,
                {"participants": [*train.participants, make_participant("second")]},
                expected_version=train.version,
            )

        current = await store.get(train.id)
        assert [p.username for p in current.participants] == ["host", "first"]

    @pytest.mark.asyncio
    async def test_stale_version_on_unknown_id_is_not_found(self, store, make_participant):
        with pytest.raises(TrainNotFoundError):
            await store.update(
                "NOPE00", {"participants": [make_participant("x", True)]}, expected_version=1
            )

    @pytest.mark.asyncio
    async def test_only_participants_can_change(self, store, make_train):
        train = await store.create(make_train())

        with pytest.raises(ValueError):
            await store.update(train.id, {"platform": "tiktok"})


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_only_live_trains(self, store, make_train, clock):
        now = clock()
        await store.create(make_train("IG0001", Platform.INSTAGRAM, created_at=now))
        await store.create(
            make_train("IG0002", Platform.INSTAGRAM, created_at=now - timedelta(days=2))
        )
        await store.create(
            make_train("TW0001", Platform.TWITTER, created_at=now - timedelta(hours=1))
        )
        # expired a day ago
        await store.create(
            make_train("TW0002", Platform.TWITTER, created_at=now - timedelta(days=8))
        )

        stats = await store.get_stats()

        assert stats.total_trains == 3
        assert stats.trains_today == 2
        by_platform = {row.platform: (row.count, row.today) for row in stats.platforms}
        assert by_platform == {"instagram": (2, 1), "twitter": (1, 1)}

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        stats = await store.get_stats()

        assert stats.total_trains == 0
        assert stats.trains_today == 0
        assert stats.platforms == []


class TestWallClock:
    """Store driven by the real clock rather than the fixed test clock"""

    @pytest.mark.asyncio
    async def test_round_trip_keeps_utc(self, session_factory, make_participant):
        store = TrainStore(session_factory)
        now = utcnow()
        train = Train(
            id="WALL01",
            name="Wall Clock",
            platform=Platform.TWITTER,
            participants=[make_participant("host", is_host=True)],
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=7),
        )

        await store.create(train)
        fetched = await store.get("WALL01")

        assert fetched.created_at == now
        assert fetched.expires_at == now + timedelta(days=7)
        assert fetched.created_at.utcoffset() == timedelta(0)

        updated = await store.update(
            "WALL01",
            {"participants": [*fetched.participants, make_participant("guest")]},
            expected_version=fetched.version,
        )

        assert updated.updated_at >= now
        assert updated.updated_at.tzinfo is not None
        assert (await store.get_stats()).trains_today == 1

    def test_naive_timestamps_are_read_as_utc(self, make_participant):
        naive = datetime(2026, 3, 1, 9, 30)

        train = Train(
            id="NAIVE1",
            name="Naive",
            platform=Platform.TWITTER,
            participants=[make_participant("host", is_host=True)],
            created_at=naive,
            expires_at=naive + timedelta(days=7),
        )

        assert train.created_at == naive.replace(tzinfo=timezone.utc)
