"""Record Catalog - Static mapping of record types to storage locations.

Each record type maps to exactly one remote document (users/{uid}/data/{type})
and one or more local store slots. Nothing here performs I/O.
"""

from dataclasses import dataclass
from typing import Any

from .models import DocumentShape, RecordType


USERS_COLLECTION = "users"
DATA_COLLECTION = "data"


class StorageKeys:
    """Local store slot names."""

    USER_PROFILE = "nutrinote_user_profile"
    DAILY_TARGET = "nutrinote_daily_target"
    MACRO_GOALS = "nutrinote_macro_goals"
    MICRONUTRIENT_GOALS = "nutrinote_micronutrient_goals"
    PREFERENCES = "nutrinote_preferences"
    ONBOARDING = "nutrinote_onboarding_complete"
    CURRENT_DATE = "nutrinote_current_date"
    FOOD_LOG = "nutrinote_food_log"
    EXERCISE_LOG = "nutrinote_exercise_log"
    WATER_LOG = "nutrinote_water_log"
    WEEKLY_HISTORY = "nutrinote_weekly_history"
    FOOD_HISTORY = "nutrinote_food_history"
    FAVORITE_FOODS = "nutrinote_favorite_foods"
    RECENT_FOODS = "nutrinote_recent_foods"
    WEIGHT_LOG = "nutrinote_weight_log"
    STREAK_DATA = "nutrinote_streak_data"
    LAST_SYNC_TIME = "nutrinote_last_sync_time"


# Default value returned for each slot when nothing is stored
SLOT_DEFAULTS: dict[str, Any] = {
    StorageKeys.USER_PROFILE: None,
    StorageKeys.DAILY_TARGET: None,
    StorageKeys.MACRO_GOALS: None,
    StorageKeys.MICRONUTRIENT_GOALS: None,
    StorageKeys.PREFERENCES: None,
    StorageKeys.ONBOARDING: False,
    StorageKeys.CURRENT_DATE: None,
    StorageKeys.FOOD_LOG: [],
    StorageKeys.EXERCISE_LOG: [],
    StorageKeys.WATER_LOG: 0,
    StorageKeys.WEEKLY_HISTORY: {},
    StorageKeys.FOOD_HISTORY: {},
    StorageKeys.FAVORITE_FOODS: [],
    StorageKeys.RECENT_FOODS: [],
    StorageKeys.WEIGHT_LOG: [],
    StorageKeys.STREAK_DATA: {},
    StorageKeys.LAST_SYNC_TIME: None,
}

# Remote profile field -> local slot. The remote profile document is a
# composite of these five slots.
PROFILE_FIELDS: dict[str, str] = {
    "userProfile": StorageKeys.USER_PROFILE,
    "dailyTarget": StorageKeys.DAILY_TARGET,
    "macroGoals": StorageKeys.MACRO_GOALS,
    "micronutrientGoals": StorageKeys.MICRONUTRIENT_GOALS,
    "preferences": StorageKeys.PREFERENCES,
}

# foodLog day field -> local slot
FOOD_LOG_FIELDS: dict[str, str] = {
    "entries": StorageKeys.FOOD_LOG,
    "exercise": StorageKeys.EXERCISE_LOG,
    "water": StorageKeys.WATER_LOG,
}


@dataclass(frozen=True)
class RecordSpec:
    """Where a record type lives remotely and locally.

    Attributes:
        record_type: The record type
        shape: Layout of the remote document
        local_slots: Local store keys backing this record (empty for
            recipes/templates, which live in their own collections)
        in_batch: Whether bulk upload writes it inside the atomic batch
    """

    record_type: RecordType
    shape: DocumentShape
    local_slots: tuple[str, ...] = ()
    in_batch: bool = True

    @property
    def document_id(self) -> str:
        return self.record_type.value


RECORD_CATALOG: dict[RecordType, RecordSpec] = {
    RecordType.PROFILE: RecordSpec(
        RecordType.PROFILE, DocumentShape.SCALAR, tuple(PROFILE_FIELDS.values())
    ),
    RecordType.FOOD_LOG: RecordSpec(
        RecordType.FOOD_LOG, DocumentShape.DATE_MAP, tuple(FOOD_LOG_FIELDS.values())
    ),
    RecordType.HISTORY: RecordSpec(
        RecordType.HISTORY, DocumentShape.SCALAR, (StorageKeys.WEEKLY_HISTORY,)
    ),
    RecordType.FOOD_HISTORY: RecordSpec(
        RecordType.FOOD_HISTORY, DocumentShape.SCALAR, (StorageKeys.FOOD_HISTORY,)
    ),
    RecordType.FAVORITES: RecordSpec(
        RecordType.FAVORITES, DocumentShape.LIST, (StorageKeys.FAVORITE_FOODS,)
    ),
    RecordType.RECENT_FOODS: RecordSpec(
        RecordType.RECENT_FOODS, DocumentShape.LIST, (StorageKeys.RECENT_FOODS,)
    ),
    RecordType.WEIGHT_LOG: RecordSpec(
        RecordType.WEIGHT_LOG, DocumentShape.LIST, (StorageKeys.WEIGHT_LOG,)
    ),
    RecordType.STREAK_DATA: RecordSpec(
        RecordType.STREAK_DATA, DocumentShape.SCALAR, (StorageKeys.STREAK_DATA,)
    ),
    RecordType.RECIPES: RecordSpec(RecordType.RECIPES, DocumentShape.LIST, in_batch=False),
    RecordType.TEMPLATES: RecordSpec(RecordType.TEMPLATES, DocumentShape.LIST, in_batch=False),
}

# Every document owned by a user, in the order they are fetched and deleted
USER_DATA_DOCS: tuple[RecordType, ...] = tuple(RECORD_CATALOG)

# Record types committed together by a bulk upload
BATCH_RECORD_TYPES: tuple[RecordType, ...] = tuple(
    spec.record_type for spec in RECORD_CATALOG.values() if spec.in_batch
)


def get_record_spec(record_type: RecordType) -> RecordSpec:
    """Look up the catalog entry for a record type."""
    return RECORD_CATALOG[record_type]


def document_path(user_id: str, record_type: RecordType) -> str:
    """Full remote path of a record type's document.

    Args:
        user_id: The user's ID
        record_type: The record type

    Returns:
        Path in the form users/{user_id}/data/{record_type}
    """
    return f"{USERS_COLLECTION}/{user_id}/{DATA_COLLECTION}/{record_type.value}"
