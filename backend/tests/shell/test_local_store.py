"""Tests for local store backends and slot helpers."""

from datetime import datetime, timezone

from nutrisync.core.catalog import StorageKeys
from nutrisync.core.models import RecordType
from nutrisync.shell.local_store import (
    InMemoryLocalStore,
    JsonFileLocalStore,
    LocalStoreConfig,
    create_local_store,
)


class TestPrimitives:
    """Tests for get/set/remove."""

    def test_default_when_absent(self):
        """Absent slots return their catalog default."""
        store = InMemoryLocalStore()
        assert store.get(StorageKeys.FOOD_LOG) == []
        assert store.get(StorageKeys.WATER_LOG) == 0
        assert store.get(StorageKeys.USER_PROFILE) is None

    def test_explicit_default(self):
        """An explicit default overrides the catalog default."""
        assert InMemoryLocalStore().get("unknown", "fallback") == "fallback"

    def test_defaults_are_not_shared(self):
        """Mutating a returned default does not leak into later reads."""
        store = InMemoryLocalStore()
        store.get(StorageKeys.FOOD_LOG).append("x")
        assert store.get(StorageKeys.FOOD_LOG) == []

    def test_set_then_get(self):
        """Values round-trip through JSON."""
        store = InMemoryLocalStore()
        assert store.set(StorageKeys.STREAK_DATA, {"current": 2}) is True
        assert store.get(StorageKeys.STREAK_DATA) == {"current": 2}

    def test_unserializable_write_returns_false(self):
        """Writes that cannot be serialized fail without raising."""
        store = InMemoryLocalStore()
        assert store.set(StorageKeys.STREAK_DATA, {"bad": object()}) is False

    def test_corrupt_value_returns_default(self):
        """Unparseable stored data reads as the default."""
        store = InMemoryLocalStore()
        store._data[StorageKeys.FOOD_LOG] = "{not json"
        assert store.get(StorageKeys.FOOD_LOG) == []

    def test_remove(self):
        """Removed slots fall back to the default."""
        store = InMemoryLocalStore({StorageKeys.WATER_LOG: 400})
        store.remove(StorageKeys.WATER_LOG)
        assert store.get(StorageKeys.WATER_LOG) == 0


class TestSyncHelpers:
    """Tests for the sync-specific helpers."""

    def test_last_sync_none_when_unset(self):
        """Never-synced stores report None."""
        assert InMemoryLocalStore().load_last_sync_time() is None

    def test_last_sync_round_trip(self):
        """Datetimes round-trip at millisecond precision."""
        store = InMemoryLocalStore()
        moment = datetime(2025, 2, 23, 12, 0, tzinfo=timezone.utc)
        store.save_last_sync_time(moment)
        assert store.load_last_sync_time() == moment

    def test_last_sync_accepts_iso_string(self):
        """ISO strings are accepted."""
        store = InMemoryLocalStore()
        store.save_last_sync_time("2025-02-23T12:00:00.000Z")
        assert store.get(StorageKeys.LAST_SYNC_TIME) == "2025-02-23T12:00:00.000Z"

    def test_has_local_data(self):
        """Profile or food entries count as local data."""
        assert InMemoryLocalStore().has_local_data() is False
        assert InMemoryLocalStore({StorageKeys.USER_PROFILE: {"age": 1}}).has_local_data() is True
        assert InMemoryLocalStore({StorageKeys.FOOD_LOG: [{"food": "x"}]}).has_local_data() is True

    def test_water_alone_is_not_local_data(self):
        """Only profile and food entries decide migration."""
        assert InMemoryLocalStore({StorageKeys.WATER_LOG: 500}).has_local_data() is False

    def test_load_profile_composite(self):
        """Profile payload merges its slots plus onboarding and current date."""
        store = InMemoryLocalStore({StorageKeys.DAILY_TARGET: 2100})
        profile = store.load_profile()
        assert profile["dailyTarget"] == 2100
        assert profile["onboarding"] is False
        assert set(profile) == {
            "userProfile",
            "dailyTarget",
            "macroGoals",
            "micronutrientGoals",
            "preferences",
            "onboarding",
            "currentDate",
        }

    def test_save_record_profile_partial(self):
        """Saving a partial profile only touches the fields given."""
        store = InMemoryLocalStore({StorageKeys.MACRO_GOALS: {"protein": 100}})
        store.save_record(RecordType.PROFILE, {"dailyTarget": 1800})
        assert store.get(StorageKeys.DAILY_TARGET) == 1800
        assert store.get(StorageKeys.MACRO_GOALS) == {"protein": 100}

    def test_save_record_food_log(self):
        """foodLog payloads are split into three slots."""
        store = InMemoryLocalStore()
        store.save_record(RecordType.FOOD_LOG, {"entries": [{"food": "apple"}], "water": 250})
        assert store.load_food_log() == {"entries": [{"food": "apple"}], "exercise": [], "water": 250}

    def test_save_record_rejects_invalid_food_log(self):
        """An invalid foodLog payload is refused without raising or writing."""
        store = InMemoryLocalStore({StorageKeys.WATER_LOG: 300})
        assert store.save_record(RecordType.FOOD_LOG, {"water": -1, "entries": [1]}) is False
        assert store.save_record(RecordType.FOOD_LOG, {"entries": "apple"}) is False
        assert store.get(StorageKeys.WATER_LOG) == 300
        assert store.get(StorageKeys.FOOD_LOG) == []

    def test_save_record_rejects_non_object_profile(self):
        """A profile payload that is not a mapping is refused."""
        store = InMemoryLocalStore()
        assert store.save_record(RecordType.PROFILE, [1, 2]) is False
        assert store.get(StorageKeys.USER_PROFILE) is None

    def test_load_record_single_slot(self):
        """Single-slot types read their slot."""
        store = InMemoryLocalStore({StorageKeys.RECENT_FOODS: [{"name": "tea"}]})
        assert store.load_record(RecordType.RECENT_FOODS) == [{"name": "tea"}]


class TestJsonFileLocalStore:
    """Tests for the file-backed store."""

    def test_persists_across_instances(self, tmp_path):
        """Values survive reopening the file."""
        path = tmp_path / "store.json"
        JsonFileLocalStore(path).set(StorageKeys.WEIGHT_LOG, [{"kg": 61}])
        assert JsonFileLocalStore(path).get(StorageKeys.WEIGHT_LOG) == [{"kg": 61}]

    def test_corrupt_file_starts_empty(self, tmp_path):
        """A corrupt file is treated as empty."""
        path = tmp_path / "store.json"
        path.write_text("not json")
        assert JsonFileLocalStore(path).get(StorageKeys.FOOD_LOG) == []

    def test_create_from_config(self, tmp_path):
        """A data dir selects the file-backed store."""
        store = create_local_store(LocalStoreConfig(data_dir=str(tmp_path)))
        assert isinstance(store, JsonFileLocalStore)
        assert isinstance(create_local_store(LocalStoreConfig()), InMemoryLocalStore)

    def test_config_from_env(self, monkeypatch):
        """NUTRISYNC_DATA_DIR configures the data dir."""
        monkeypatch.setenv("NUTRISYNC_DATA_DIR", "/tmp/nutrisync")
        assert LocalStoreConfig.from_env().data_dir == "/tmp/nutrisync"
