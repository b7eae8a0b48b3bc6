"""Firestore Client - Remote document store for synced user data.

This module handles all remote database I/O for sync operations.
All I/O is contained here; document shaping lives in the core module.
Unlike the local store, every method here propagates transport errors.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable

from google.cloud import firestore

from ..core.catalog import DATA_COLLECTION, USERS_COLLECTION
from ..core.models import RecordType


logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        enabled: Whether cloud sync is turned on at all
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    enabled: bool = True
    project_id: str | None = None
    database: str | None = None

    @classmethod
    def from_env(cls) -> "FirestoreConfig":
        """Build config from NUTRISYNC_SYNC_ENABLED, GOOGLE_CLOUD_PROJECT and FIRESTORE_DATABASE.

        Sync is disabled unless NUTRISYNC_SYNC_ENABLED is set to a truthy value.
        """
        return cls(
            enabled=os.environ.get("NUTRISYNC_SYNC_ENABLED", "").strip().lower() in _TRUTHY,
            project_id=os.environ.get("GOOGLE_CLOUD_PROJECT") or None,
            database=os.environ.get("FIRESTORE_DATABASE") or None,
        )


class SyncFirestoreClient:
    """Async client for per-user sync documents.

    Document structure per user:
        users/{user_id}/data/
            profile, foodLog, history, foodHistory, favorites,
            recentFoods, weightLog, streakData, recipes, templates
    """

    def __init__(
        self,
        config: FirestoreConfig | None = None,
        client: firestore.AsyncClient | None = None,
    ) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
            client: Pre-built AsyncClient (skips lazy creation)
        """
        self.config = config or FirestoreConfig()
        self._client = client

    @property
    def is_configured(self) -> bool:
        """False when remote sync is disabled; callers treat that as offline-only mode."""
        return self.config.enabled

    @property
    def client(self) -> firestore.AsyncClient:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.AsyncClient(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.AsyncDocumentReference:
        """Get reference to user document."""
        return self.client.collection(USERS_COLLECTION).document(user_id)

    def _data_ref(
        self, user_id: str, record_type: RecordType
    ) -> firestore.AsyncDocumentReference:
        """Get reference to a record type's document."""
        return self._user_ref(user_id).collection(DATA_COLLECTION).document(record_type.value)

    # ==================== Document Operations ====================

    async def get_document(self, user_id: str, record_type: RecordType) -> dict | None:
        """Fetch a record type's document.

        Args:
            user_id: The user's ID
            record_type: Record type to read

        Returns:
            Document data if it exists, None otherwise
        """
        logger.debug("Fetching %s for user: %s", record_type.value, user_id[:8])
        snapshot = await self._data_ref(user_id, record_type).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def document_exists(self, user_id: str, record_type: RecordType) -> bool:
        """Check whether a record type's document exists."""
        snapshot = await self._data_ref(user_id, record_type).get()
        return bool(snapshot.exists)

    async def set_document(
        self, user_id: str, record_type: RecordType, data: dict
    ) -> None:
        """Replace a record type's whole document.

        Args:
            user_id: The user's ID
            record_type: Record type to write
            data: Full document contents
        """
        logger.info("Writing %s for user: %s", record_type.value, user_id[:8])
        await self._data_ref(user_id, record_type).set(data)

    async def delete_document(self, user_id: str, record_type: RecordType) -> None:
        """Delete a record type's document (no error if it does not exist)."""
        logger.info("Deleting %s for user: %s", record_type.value, user_id[:8])
        await self._data_ref(user_id, record_type).delete()

    async def commit_batch(
        self, user_id: str, documents: Iterable[tuple[RecordType, dict]]
    ) -> None:
        """Write several documents in one atomic batch.

        Either every document is written or, if the commit fails, none are.

        Args:
            user_id: The user's ID
            documents: (record type, full document) pairs
        """
        batch = self.client.batch()
        count = 0
        for record_type, data in documents:
            batch.set(self._data_ref(user_id, record_type), data)
            count += 1
        logger.info("Committing batch of %d documents for user: %s", count, user_id[:8])
        await batch.commit()


# Lazy-initialized client
_firestore_client: SyncFirestoreClient | None = None


def get_firestore_client() -> SyncFirestoreClient:
    """Get or create Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        _firestore_client = SyncFirestoreClient(FirestoreConfig.from_env())
    return _firestore_client
