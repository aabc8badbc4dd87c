"""
Train persistence.

`TrainStore` is the only component that talks to the database. It stores one
row per train with the participants as an ordered JSON blob, hides expired
trains from reads, and guards updates with an optimistic `version` column:
a caller that passes `expected_version` only overwrites the row it read.

Database errors are logged and re-raised as `PersistenceError`; missing or
expired trains raise `TrainNotFoundError`.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select

from core.exceptions import ConcurrentUpdateError, PersistenceError, TrainNotFoundError
from core.models import (
    Participant,
    PlatformStats,
    Train,
    TrainRecord,
    TrainStats,
    dump_participants,
    utcnow,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"participants"})
STATS_WINDOW = timedelta(hours=24)


class TrainStore:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.clock = clock

    async def create(self, train: Train) -> Train:
        record = train.to_record()
        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
                await session.refresh(record)
                created = Train.from_record(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create train {train.id}: {e}", exc_info=True)
            raise PersistenceError("create", str(e)) from e

        logger.debug(f"Stored train {created.id}")
        return created

    async def get(self, train_id: str) -> Train:
        """Fetch a train; expired trains are indistinguishable from missing ones"""
        now = self.clock()
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(TrainRecord).where(
                        TrainRecord.id == train_id, TrainRecord.expires_at > now
                    )
                )
                record = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read train {train_id}: {e}", exc_info=True)
            raise PersistenceError("get", str(e)) from e

        if record is None:
            raise TrainNotFoundError(train_id)
        return Train.from_record(record)

    async def exists(self, train_id: str) -> bool:
        """True when a row with this id exists, expired or not"""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(TrainRecord.id).where(TrainRecord.id == train_id)
                )
                return result.first() is not None
        except SQLAlchemyError as e:
            raise PersistenceError("exists", str(e)) from e

    async def update(
        self,
        train_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Train:
        """
        Replace the given fields, refresh `updated_at` and bump `version`.

        Expiry is not checked here. Raises `TrainNotFoundError` when no row has
        this id, and `ConcurrentUpdateError` when `expected_version` is given
        and no longer matches the stored row.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        values = dict(fields)
        if "participants" in values:
            values["participants"] = _serialise(values["participants"])

        statement = update(TrainRecord).where(TrainRecord.id == train_id)
        if expected_version is not None:
            statement = statement.where(TrainRecord.version == expected_version)
        statement = statement.values(
            **values, updated_at=self.clock(), version=TrainRecord.version + 1
        ).execution_options(synchronize_session=False)

        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                if result.rowcount == 0:
                    await session.rollback()
                    if expected_version is not None:
                        existing = await session.execute(
                            select(TrainRecord.id).where(TrainRecord.id == train_id)
                        )
                        if existing.first() is not None:
                            raise ConcurrentUpdateError(train_id)
                    raise TrainNotFoundError(train_id)
                await session.commit()

                record = await session.get(TrainRecord, train_id, populate_existing=True)
                updated = Train.from_record(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update train {train_id}: {e}", exc_info=True)
            raise PersistenceError("update", str(e)) from e

        return updated

    async def get_stats(self) -> TrainStats:
        """Counts over non-expired trains, overall and per platform"""
        now = self.clock()
        since = now - STATS_WINDOW
        statement = (
            select(
                TrainRecord.platform,
                func.count(TrainRecord.id),
                func.sum(case((TrainRecord.created_at > since, 1), else_=0)),
            )
            .where(TrainRecord.expires_at > now)
            .group_by(TrainRecord.platform)
            .order_by(TrainRecord.platform)
        )
        try:
            async with self.session_factory() as session:
                rows = (await session.execute(statement)).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute train stats: {e}", exc_info=True)
            raise PersistenceError("stats", str(e)) from e

        platforms = [
            PlatformStats(platform=platform, count=count, today=int(today or 0))
            for platform, count, today in rows
        ]
        return TrainStats(
            total_trains=sum(p.count for p in platforms),
            trains_today=sum(p.today for p in platforms),
            platforms=platforms,
        )


def _serialise(participants: List[Any]) -> List[Dict[str, Any]]:
    return dump_participants(
        [
            p if isinstance(p, Participant) else Participant.model_validate(p)
            for p in participants
        ]
    )
