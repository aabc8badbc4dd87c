"""
API Endpoints for FollowTrain.

REST routes used by the browser client to look up profiles and to create,
read and grow trains. Handlers are thin: they parse the request, delegate to
the profile resolver, train service or train store, and return JSON. Domain
errors propagate as `FollowTrainError`s and are turned into HTTP responses by
`ErrorHandlingMiddleware`.

Endpoints Provided:
- `GET /api/profile/{platform}/{username}`: profile metadata, live or fallback.
- `POST /api/trains`: persist a train built by the client.
- `POST /api/trains/new`: create a train from a platform and a profile reference.
- `GET /api/trains/{train_id}`: fetch a live (non-expired) train.
- `PATCH /api/trains/{train_id}`: replace the participant list (append-only).
- `POST /api/trains/{train_id}/join`: add a participant.
- `GET /api/stats`: counts of live trains overall and per platform.
"""

import logging

from fastapi import APIRouter, Depends, status

from core.logging_config import log_function_call
from core.models import (
    JoinTrainRequest,
    NewTrainRequest,
    Profile,
    Train,
    TrainCreate,
    TrainStats,
    TrainUpdate,
)
from core.platforms import Platform
from services.profile_service import ProfileResolver
from services.train_service import TrainService
from services.train_store import TrainStore
from .dependencies import get_profile_resolver, get_train_service, get_train_store

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api", tags=["Trains"])


@router.get("/profile/{platform}/{username}", response_model=Profile)
async def get_profile(
    platform: Platform,
    username: str,
    resolver: ProfileResolver = Depends(get_profile_resolver),
):
    """Profile metadata for a username; never fails because of the upstream platform"""
    logger.info(f"Profile request for {platform.value}/{username}")
    return await resolver.resolve(username, platform)


@router.post("/trains", response_model=Train, status_code=status.HTTP_201_CREATED)
@log_function_call(logger)
async def create_client_train(
    payload: TrainCreate,
    train_svc: TrainService = Depends(get_train_service),
):
    """Persist a train assembled by the client"""
    return await train_svc.save_client_train(payload)


@router.post("/trains/new", response_model=Train, status_code=status.HTTP_201_CREATED)
@log_function_call(logger)
async def create_train(
    request: NewTrainRequest,
    train_svc: TrainService = Depends(get_train_service),
):
    """Start a train from the host's profile URL or handle"""
    return await train_svc.create_train(request.platform, request.profile, request.name)


@router.get("/trains/{train_id}", response_model=Train)
async def get_train(
    train_id: str,
    train_svc: TrainService = Depends(get_train_service),
):
    return await train_svc.get_train(train_id)


@router.patch("/trains/{train_id}", response_model=Train)
@log_function_call(logger)
async def update_train(
    train_id: str,
    updates: TrainUpdate,
    train_svc: TrainService = Depends(get_train_service),
):
    """Replace the participant list; existing participants must be kept in order"""
    return await train_svc.replace_participants(train_id, updates.participants)


@router.post("/trains/{train_id}/join", response_model=Train)
@log_function_call(logger)
async def join_train(
    train_id: str,
    request: JoinTrainRequest,
    train_svc: TrainService = Depends(get_train_service),
):
    return await train_svc.join_train(train_id, request.profile)


@router.get("/stats", response_model=TrainStats)
async def get_stats(store: TrainStore = Depends(get_train_store)):
    """Aggregate counts over trains that have not expired"""
    return await store.get_stats()
