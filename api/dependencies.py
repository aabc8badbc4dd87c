from core.database import async_session
from services.profile_service import ProfileResolver
from services.train_service import TrainService
from services.train_store import TrainStore

profile_resolver = ProfileResolver()
train_store = TrainStore(async_session)
train_service = TrainService(train_store, profile_resolver)


def get_profile_resolver() -> ProfileResolver:
    return profile_resolver


def get_train_store() -> TrainStore:
    return train_store


def get_train_service() -> TrainService:
    return train_service
