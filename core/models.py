"""
Core data models for the FollowTrain API

`TrainRecord` is the database row; participants live inside it as a single
ordered JSON blob. `Train`, `Participant` and `Profile` are the API-facing
pydantic models and use camelCase on the wire to match the browser client.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import SQLModel, Field

from core.platforms import Platform


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp; all stored datetimes use this convention"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to aware UTC; naive values (SQLite, old clients) are taken as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _timestamp_column(index: bool = False) -> Column:
    return Column(DateTime(timezone=True), nullable=False, index=index)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrainRecord(SQLModel, table=True):
    """
    One row per train. Expired rows are never deleted; reads filter them out.
    """

    __tablename__ = "trains"

    id: str = Field(primary_key=True, max_length=10)
    name: str = Field(max_length=255)
    platform: str = Field(max_length=50, index=True)
    participants: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(index=True)
    )
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    expires_at: datetime = Field(sa_column=_timestamp_column(index=True))
    version: int = Field(default=1)


class Profile(CamelModel):
    """Profile metadata; identical shape whether fetched live or generated."""

    username: str
    display_name: str
    bio: str = ""
    avatar: str
    followers: int = PydanticField(default=0, ge=0)
    is_verified: bool = False


class Participant(Profile):
    is_host: bool = False
    joined_at: datetime = PydanticField(default_factory=utcnow)

    @field_validator("joined_at")
    @classmethod
    def joined_at_as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_profile(
        cls, profile: Profile, is_host: bool, joined_at: datetime
    ) -> "Participant":
        return cls(**profile.model_dump(), is_host=is_host, joined_at=joined_at)


class Train(CamelModel):
    id: str
    name: str
    platform: Platform
    participants: List[Participant]
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: datetime
    version: int = 1

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def timestamps_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @classmethod
    def from_record(cls, record: TrainRecord) -> "Train":
        return cls(
            id=record.id,
            name=record.name,
            platform=Platform(record.platform),
            participants=[Participant.model_validate(p) for p in record.participants],
            created_at=record.created_at,
            updated_at=record.updated_at,
            expires_at=record.expires_at,
            version=record.version,
        )

    def to_record(self) -> TrainRecord:
        return TrainRecord(
            id=self.id,
            name=self.name,
            platform=self.platform.value,
            participants=dump_participants(self.participants),
            created_at=self.created_at,
            updated_at=self.updated_at or self.created_at,
            expires_at=self.expires_at,
            version=self.version,
        )


def dump_participants(participants: List[Participant]) -> List[Dict[str, Any]]:
    """Serialise participants for the JSON column, keeping order and camelCase keys"""
    return [p.model_dump(mode="json", by_alias=True) for p in participants]


# Request/Response Models
class TrainCreate(CamelModel):
    """A client-built train, as posted to POST /api/trains."""

    id: str = PydanticField(min_length=1, max_length=10)
    name: Optional[str] = PydanticField(default=None, max_length=255)
    platform: Platform
    participants: List[Participant]


class TrainUpdate(CamelModel):
    participants: List[Participant]


class NewTrainRequest(CamelModel):
    platform: Platform
    profile: str
    name: Optional[str] = PydanticField(default=None, max_length=255)


class JoinTrainRequest(CamelModel):
    profile: str


class PlatformStats(CamelModel):
    platform: str
    count: int
    today: int


class TrainStats(CamelModel):
    total_trains: int
    trains_today: int
    platforms: List[PlatformStats]
