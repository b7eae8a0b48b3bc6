"""Document Shaping - Pure functions for remote document layouts.

All functions are pure: same input always produces same output, no side effects.
Remote documents come in three shapes:
    scalar-wrapped:  { ...fields, updatedAt }
    list-wrapped:    { items: [...], updatedAt }
    date-keyed map:  { "YYYY-MM-DD": { entries, exercise, water }, updatedAt }
"""

from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from .catalog import PROFILE_FIELDS, get_record_spec
from .models import DocumentShape, FoodLogDay, RecordType


UPDATED_AT = "updatedAt"
ITEMS = "items"


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Naive datetimes are treated as UTC.

    Args:
        moment: The time to format

    Returns:
        String like 2025-02-23T12:00:00.000Z
    """
    moment = _as_utc(moment)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp back into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings (with or without a Z suffix).
    Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def day_key(moment: datetime) -> str:
    """Calendar-day key (UTC) used inside the foodLog document."""
    return _as_utc(moment).date().isoformat()


def build_scalar_document(payload: dict | None, updated_at: str) -> dict:
    """Wrap a mapping payload as { ...fields, updatedAt }."""
    document = dict(payload or {})
    document[UPDATED_AT] = updated_at
    return document


def build_list_document(items: list | None, updated_at: str) -> dict:
    """Wrap a list payload as { items, updatedAt }."""
    return {ITEMS: list(items or []), UPDATED_AT: updated_at}


def build_food_log_day(payload: dict | None) -> dict:
    """Normalize a foodLog payload into a single day's entry.

    Missing entries/exercise default to empty lists, missing water to 0.
    """
    payload = payload or {}
    water = payload.get("water")
    day = FoodLogDay(
        entries=payload.get("entries") or [],
        exercise=payload.get("exercise") or [],
        water=0 if water is None else water,
    )
    return day.model_dump()


def payload_error(record_type: RecordType, payload: Any) -> str | None:
    """Describe why a local payload cannot be stored, or None if it can.

    Profile and foodLog payloads must be objects, and foodLog fields must
    normalize into a valid day. Recipes and templates take a single item.
    """
    if record_type in (RecordType.RECIPES, RecordType.TEMPLATES):
        return None if isinstance(payload, dict) else "payload must be a single item"
    if record_type not in (RecordType.PROFILE, RecordType.FOOD_LOG):
        return None
    if payload is not None and not isinstance(payload, dict):
        return f"{record_type.value} payload must be an object"
    if record_type is RecordType.FOOD_LOG:
        try:
            build_food_log_day(payload)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            return f"invalid foodLog fields: {fields}"
    return None


def merge_food_log_day(
    existing: dict | None, today: str, day: dict, updated_at: str
) -> dict:
    """Replace only today's key in a foodLog document.

    Args:
        existing: Current remote foodLog document (None if absent)
        today: Day key to write
        day: Normalized day entry (see build_food_log_day)
        updated_at: Timestamp for the rewrite

    Returns:
        New document with every other day preserved
    """
    document = dict(existing or {})
    document[today] = day
    document[UPDATED_AT] = updated_at
    return document


def filter_user_templates(templates: list | None) -> list:
    """Drop prebuilt templates, which ship with the app and are never synced."""
    return [t for t in (templates or []) if not (isinstance(t, dict) and t.get("isPrebuilt"))]


def build_document(
    record_type: RecordType,
    payload: Any,
    updated_at: str,
    today: str,
    existing: dict | None = None,
) -> dict:
    """Build the full remote document for one record type.

    Args:
        record_type: Record type being written
        payload: Local value (mapping for scalar types, list for list types,
            { entries, exercise, water } for foodLog)
        updated_at: Write timestamp (see format_timestamp)
        today: Day key for foodLog writes
        existing: Current foodLog document, for read-modify-write

    Returns:
        Document ready to be written whole
    """
    shape = get_record_spec(record_type).shape
    if shape is DocumentShape.DATE_MAP:
        return merge_food_log_day(existing, today, build_food_log_day(payload), updated_at)
    if shape is DocumentShape.LIST:
        if record_type is RecordType.TEMPLATES:
            payload = filter_user_templates(payload)
        return build_list_document(payload, updated_at)
    return build_scalar_document(payload, updated_at)


def strip_updated_at(document: dict) -> dict:
    """Return a copy of a document without its updatedAt field."""
    return {k: v for k, v in document.items() if k != UPDATED_AT}


def unwrap_items(document: dict) -> list:
    """Items of a list-wrapped document (empty when missing)."""
    return list(document.get(ITEMS) or [])


def split_profile(document: dict) -> dict[str, Any]:
    """Split a remote profile document into local slot values.

    Only fields that carry data are returned, so absent fields never blank
    out a local slot. dailyTarget is kept when it is any non-None value
    (0 is a valid target); the other fields must be truthy.

    Returns:
        Mapping of local storage key -> value
    """
    slots: dict[str, Any] = {}
    for field, slot in PROFILE_FIELDS.items():
        value = document.get(field)
        if field == "dailyTarget":
            if value is not None:
                slots[slot] = value
        elif value:
            slots[slot] = value
    return slots


def extract_day(document: dict, today: str) -> dict | None:
    """Today's entry from a foodLog document, or None if not present."""
    day = document.get(today)
    if not isinstance(day, dict) or not day:
        return None
    return day


def extract_record(record_type: RecordType, document: dict, today: str) -> Any:
    """Inverse of build_document: recover the payload from a remote document.

    foodLog yields today's day entry (or None); list types yield their items;
    scalar types yield their fields without updatedAt.
    """
    shape = get_record_spec(record_type).shape
    if shape is DocumentShape.DATE_MAP:
        return extract_day(document, today)
    if shape is DocumentShape.LIST:
        return unwrap_items(document)
    return strip_updated_at(document)


def ensure_item_id(item: dict, id_factory: Callable[[], str]) -> dict:
    """Copy an item, assigning a generated id when it has none."""
    if item.get("id"):
        return dict(item)
    return {**item, "id": id_factory()}
