"""Local Store - Synchronous key-value persistence for app state.

The local store is the source of truth for current state. Reads return the
slot default when nothing (or nothing readable) is stored; writes report
failure by returning False. Neither ever raises.
"""

import copy
import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.catalog import (
    FOOD_LOG_FIELDS,
    PROFILE_FIELDS,
    SLOT_DEFAULTS,
    StorageKeys,
    get_record_spec,
)
from ..core.documents import (
    build_food_log_day,
    format_timestamp,
    parse_timestamp,
    payload_error,
)
from ..core.models import RecordType


logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class LocalStoreConfig:
    """Configuration for the on-disk local store.

    Attributes:
        data_dir: Directory holding the store file (None keeps state in memory)
        filename: Name of the JSON file inside data_dir
    """

    data_dir: str | None = None
    filename: str = "local_store.json"

    @classmethod
    def from_env(cls) -> "LocalStoreConfig":
        """Build config from NUTRISYNC_DATA_DIR."""
        return cls(data_dir=os.environ.get("NUTRISYNC_DATA_DIR") or None)


class LocalStore:
    """Base key-value store with typed helpers for sync-relevant slots.

    Subclasses implement _read_raw/_write_raw over JSON strings, so every
    backend stores values exactly as they would round-trip through JSON.
    """

    def _read_raw(self, key: str) -> str | None:
        raise NotImplementedError

    def _write_raw(self, key: str, raw: str) -> None:
        raise NotImplementedError

    def _delete_raw(self, key: str) -> None:
        raise NotImplementedError

    # ==================== Primitive Operations ====================

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """Read a slot.

        Args:
            key: Storage key
            default: Value returned when the slot is empty or unreadable
                (defaults to the catalog default for the slot)

        Returns:
            The stored value, or the default
        """
        if default is _MISSING:
            default = copy.deepcopy(SLOT_DEFAULTS.get(key))
        try:
            raw = self._read_raw(key)
            if raw is None:
                return default
            return json.loads(raw)
        except Exception as e:
            logger.warning("Unreadable local slot %s: %s", key, str(e))
            return default

    def set(self, key: str, value: Any) -> bool:
        """Write a slot.

        Args:
            key: Storage key
            value: JSON-serializable value

        Returns:
            True if successful
        """
        try:
            self._write_raw(key, json.dumps(value))
            return True
        except Exception as e:
            logger.error("Failed to write local slot %s: %s", key, str(e))
            return False

    def remove(self, key: str) -> bool:
        """Clear a slot so reads fall back to the default."""
        try:
            self._delete_raw(key)
            return True
        except Exception as e:
            logger.error("Failed to remove local slot %s: %s", key, str(e))
            return False

    # ==================== Sync Helpers ====================

    def load_last_sync_time(self) -> datetime | None:
        """Last successful sync time, or None if never synced."""
        return parse_timestamp(self.get(StorageKeys.LAST_SYNC_TIME))

    def save_last_sync_time(self, moment: datetime | str) -> bool:
        """Persist the last sync time. Accepts a datetime or ISO string."""
        parsed = parse_timestamp(moment)
        if parsed is None:
            logger.warning("Ignoring invalid last sync time: %r", moment)
            return False
        return self.set(StorageKeys.LAST_SYNC_TIME, format_timestamp(parsed))

    def is_onboarding_complete(self) -> bool:
        return bool(self.get(StorageKeys.ONBOARDING))

    def mark_onboarding_complete(self) -> bool:
        return self.set(StorageKeys.ONBOARDING, True)

    def has_local_data(self) -> bool:
        """True when a profile exists or today's food log is non-empty."""
        return bool(self.get(StorageKeys.USER_PROFILE)) or len(
            self.get(StorageKeys.FOOD_LOG) or []
        ) > 0

    def load_profile(self) -> dict:
        """Assemble the composite profile payload from its local slots."""
        profile = {field: self.get(slot) for field, slot in PROFILE_FIELDS.items()}
        profile["onboarding"] = self.is_onboarding_complete()
        profile["currentDate"] = self.get(StorageKeys.CURRENT_DATE)
        return profile

    def load_food_log(self) -> dict:
        """Today's food log payload: { entries, exercise, water }."""
        return {field: self.get(slot) for field, slot in FOOD_LOG_FIELDS.items()}

    def load_record(self, record_type: RecordType) -> Any:
        """Current local payload for a flat record type.

        Raises:
            ValueError: For recipes/templates, which live in collections
        """
        if record_type is RecordType.PROFILE:
            return self.load_profile()
        if record_type is RecordType.FOOD_LOG:
            return self.load_food_log()
        slots = get_record_spec(record_type).local_slots
        if not slots:
            raise ValueError(f"{record_type.value} is not stored in the local store")
        return self.get(slots[0])

    def save_record(self, record_type: RecordType, payload: Any) -> bool:
        """Write a flat record type's payload to its local slot(s).

        Profile payloads are split into their slots (only fields present in
        the payload are written); foodLog payloads are normalized first.

        Returns:
            True if every write succeeded, False if any failed or the payload
            was rejected (nothing is written in that case)
        """
        error = payload_error(record_type, payload)
        if error is not None:
            logger.warning("Rejected local %s payload: %s", record_type.value, error)
            return False
        if record_type is RecordType.PROFILE:
            payload = payload or {}
            ok = True
            for field, slot in PROFILE_FIELDS.items():
                if field in payload:
                    ok = self.set(slot, payload[field]) and ok
            if payload.get("onboarding"):
                ok = self.mark_onboarding_complete() and ok
            if "currentDate" in payload:
                ok = self.set(StorageKeys.CURRENT_DATE, payload["currentDate"]) and ok
            return ok
        if record_type is RecordType.FOOD_LOG:
            day = build_food_log_day(payload)
            ok = True
            for field, slot in FOOD_LOG_FIELDS.items():
                ok = self.set(slot, day[field]) and ok
            return ok
        slots = get_record_spec(record_type).local_slots
        if not slots:
            raise ValueError(f"{record_type.value} is not stored in the local store")
        return self.set(slots[0], payload)


class InMemoryLocalStore(LocalStore):
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def _read_raw(self, key: str) -> str | None:
        return self._data.get(key)

    def _write_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw

    def _delete_raw(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileLocalStore(LocalStore):
    """Store backed by a single JSON file, rewritten atomically on each write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to read local store %s: %s", self.path, str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("Local store %s is not a JSON object, starting empty", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self.path)

    def _read_raw(self, key: str) -> str | None:
        return self._data.get(key)

    def _write_raw(self, key: str, raw: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = raw
            try:
                self._flush()
            except OSError:
                if previous is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = previous
                raise

    def _delete_raw(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


def create_local_store(config: LocalStoreConfig | None = None) -> LocalStore:
    """Create the local store described by config."""
    config = config or LocalStoreConfig.from_env()
    if config.data_dir:
        path = Path(config.data_dir) / config.filename
        logger.info("Using file-backed local store at %s", path)
        return JsonFileLocalStore(path)
    logger.info("Using in-memory local store")
    return InMemoryLocalStore()
