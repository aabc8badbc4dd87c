"""
Custom Exception Classes for the FollowTrain API.

Every failure the service can report is a `FollowTrainError` carrying a
message, a stable `error_code` and an optional `details` dictionary. Each
subclass also fixes the HTTP status it maps to, so the API boundary translates
errors 1:1 without per-endpoint bookkeeping.

Key Components:
- `FollowTrainError`: root of the hierarchy.
- Domain errors raised by the train service: `InvalidInputError`,
  `DuplicateParticipantError`, `TrainNotFoundError`, `ConcurrentUpdateError`.
- Infrastructure errors: `UpstreamProfileError` (absorbed by the profile
  resolver, never surfaced to callers) and `PersistenceError`.
- `to_http_exception`: converts a `FollowTrainError` to FastAPI's
  `HTTPException`.

Server-side errors (5xx) keep their diagnostic context in `details` for logging
only; `public_message` is what a client gets to see.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException

INVALID_INPUT_MESSAGE = "Please enter a valid profile URL or username"
DUPLICATE_PARTICIPANT_MESSAGE = "This profile is already in the train"
TRAIN_NOT_FOUND_MESSAGE = "Train not found"


class FollowTrainError(Exception):
    """Base exception class for FollowTrain"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "FOLLOWTRAIN_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        if self.status_code >= 500:
            return "An unexpected error occurred"
        return self.message


class InvalidInputError(FollowTrainError):
    """Raised when user input cannot be turned into a valid request"""

    status_code = 400

    def __init__(self, reason: str = INVALID_INPUT_MESSAGE, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(reason, "INVALID_INPUT", details)


class DuplicateParticipantError(FollowTrainError):
    """Raised when a username is already on the train (case-insensitive)"""

    status_code = 409

    def __init__(self, train_id: str, username: str):
        super().__init__(
            DUPLICATE_PARTICIPANT_MESSAGE,
            "DUPLICATE_PARTICIPANT",
            {"train_id": train_id, "username": username},
        )


class TrainNotFoundError(FollowTrainError):
    """Raised when a train id is unknown or the train has expired"""

    status_code = 404

    def __init__(self, train_id: str):
        super().__init__(
            TRAIN_NOT_FOUND_MESSAGE, "TRAIN_NOT_FOUND", {"train_id": train_id}
        )


class ConcurrentUpdateError(FollowTrainError):
    """Raised when a train changed between read and write"""

    status_code = 409

    def __init__(self, train_id: str):
        super().__init__(
            "The train was updated by someone else, please reload and try again",
            "CONCURRENT_UPDATE",
            {"train_id": train_id},
        )


class UpstreamProfileError(FollowTrainError):
    """Raised by live profile providers; never leaves the profile resolver"""

    status_code = 502

    def __init__(self, platform: str, username: str, reason: str):
        super().__init__(
            f"Profile lookup on {platform} failed for {username}: {reason}",
            "UPSTREAM_PROFILE_ERROR",
            {"platform": platform, "username": username, "reason": reason},
        )


class PersistenceError(FollowTrainError):
    """Raised when the train store cannot complete an operation"""

    status_code = 500

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Database operation '{operation}' failed: {reason}",
            "PERSISTENCE_ERROR",
            {"operation": operation, "reason": reason},
        )


def to_http_exception(exc: FollowTrainError) -> HTTPException:
    """Convert FollowTrainError to FastAPI HTTPException"""
    detail: Dict[str, Any] = {
        "error_code": exc.error_code,
        "message": exc.public_message,
    }
    if exc.status_code < 500:
        detail["details"] = exc.details

    return HTTPException(status_code=exc.status_code, detail=detail)
