"""Unit tests for the record catalog."""

from nutrisync.core.catalog import (
    BATCH_RECORD_TYPES,
    PROFILE_FIELDS,
    RECORD_CATALOG,
    USER_DATA_DOCS,
    StorageKeys,
    document_path,
    get_record_spec,
)
from nutrisync.core.models import DocumentShape, RecordType


class TestRecordCatalog:
    """Tests for the static record type mapping."""

    def test_every_record_type_cataloged(self):
        """Each record type has exactly one catalog entry."""
        assert set(RECORD_CATALOG) == set(RecordType)

    def test_shapes(self):
        """Record types use the documented document shapes."""
        scalar = {RecordType.PROFILE, RecordType.HISTORY, RecordType.FOOD_HISTORY, RecordType.STREAK_DATA}
        listed = {
            RecordType.FAVORITES,
            RecordType.RECENT_FOODS,
            RecordType.WEIGHT_LOG,
            RecordType.RECIPES,
            RecordType.TEMPLATES,
        }
        for record_type, spec in RECORD_CATALOG.items():
            if record_type in scalar:
                assert spec.shape is DocumentShape.SCALAR
            elif record_type in listed:
                assert spec.shape is DocumentShape.LIST
            else:
                assert spec.shape is DocumentShape.DATE_MAP

    def test_profile_is_composite_of_five_slots(self):
        """Profile maps to five local slots."""
        spec = get_record_spec(RecordType.PROFILE)
        assert len(spec.local_slots) == 5
        assert set(spec.local_slots) == set(PROFILE_FIELDS.values())

    def test_batch_excludes_recipes_and_templates(self):
        """Recipes and templates sync outside the atomic batch."""
        assert len(BATCH_RECORD_TYPES) == 8
        assert RecordType.RECIPES not in BATCH_RECORD_TYPES
        assert RecordType.TEMPLATES not in BATCH_RECORD_TYPES

    def test_user_data_docs_cover_all_types(self):
        """Erasure list contains all ten documents."""
        assert len(USER_DATA_DOCS) == 10
        assert set(USER_DATA_DOCS) == set(RecordType)

    def test_document_id(self):
        """Document id is the record type value."""
        assert get_record_spec(RecordType.WEIGHT_LOG).document_id == "weightLog"


class TestDocumentPath:
    """Tests for document_path."""

    def test_path_format(self):
        """Paths follow users/{uid}/data/{type}."""
        assert document_path("u1", RecordType.FOOD_HISTORY) == "users/u1/data/foodHistory"


class TestStorageKeys:
    """Tests for local storage key constants."""

    def test_keys_unique(self):
        """No two slots share a key."""
        keys = [v for k, v in vars(StorageKeys).items() if not k.startswith("_")]
        assert len(keys) == len(set(keys))
