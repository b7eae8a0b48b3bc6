"""Core Data Models - Pydantic models and enums for sync state.

All models are plain value objects with no behavior beyond validation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class RecordType(str, Enum):
    """Logical data category synced between local and remote storage.

    The value doubles as the remote document id under users/{uid}/data/.
    """

    PROFILE = "profile"
    FOOD_LOG = "foodLog"
    HISTORY = "history"
    FOOD_HISTORY = "foodHistory"
    FAVORITES = "favorites"
    RECENT_FOODS = "recentFoods"
    WEIGHT_LOG = "weightLog"
    STREAK_DATA = "streakData"
    RECIPES = "recipes"
    TEMPLATES = "templates"

    @classmethod
    def parse(cls, value: Any) -> Optional["RecordType"]:
        """Return the matching RecordType, or None for unknown tags."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class DocumentShape(str, Enum):
    """How a record type is laid out inside its remote document."""

    SCALAR = "scalar"
    LIST = "list"
    DATE_MAP = "date_map"


class SyncStatus(str, Enum):
    """Sync state shown by the status indicator."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class SignInOutcome(str, Enum):
    """Which branch the sign-in reconciliation took."""

    SKIPPED = "skipped"
    DOWNLOADED = "downloaded"
    UPLOADED = "uploaded"
    NOTHING_TO_SYNC = "nothing_to_sync"


class SignedInUser(BaseModel):
    """Identity handed over by the auth provider on sign-in."""

    uid: str = Field(min_length=1, description="Auth provider user id")
    email: Optional[str] = Field(default=None, description="Account email, if known")


class FoodLogDay(BaseModel):
    """One calendar day inside the date-keyed foodLog document."""

    entries: list[Any] = Field(default_factory=list)
    exercise: list[Any] = Field(default_factory=list)
    water: Union[int, float] = Field(default=0, ge=0, description="Water intake in ml")


class SyncCompleteEvent(BaseModel):
    """Emitted after every successful bulk upload or download."""

    time: datetime


class SyncStatusSnapshot(BaseModel):
    """Point-in-time view of the status reporter."""

    status: SyncStatus = SyncStatus.IDLE
    last_sync_time: Optional[datetime] = None
    last_sync_label: Optional[str] = Field(default=None, description="e.g. \"5m ago\"")
    signed_in: bool = False
    user_id: Optional[str] = None
