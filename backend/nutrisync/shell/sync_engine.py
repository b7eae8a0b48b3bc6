"""Sync Engine - Local-first reconciliation between device and cloud.

Writes always land in the local store first; this engine mirrors them to
Firestore in the background and decides, at sign-in, whether the cloud copy
or the local copy wins.

Error contract:
    upload_local_to_cloud, sync_to_cloud, sync_on_sign_in  -> raise on transport failure
    sync_from_cloud, delete_user_cloud_data               -> log and absorb
    recipe/template helpers                                -> log and absorb
When remote sync is not configured every operation is a silent no-op.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from ..core.catalog import BATCH_RECORD_TYPES, FOOD_LOG_FIELDS, USER_DATA_DOCS
from ..core.documents import (
    build_document,
    day_key,
    ensure_item_id,
    extract_day,
    extract_record,
    filter_user_templates,
    format_timestamp,
    split_profile,
    strip_updated_at,
    unwrap_items,
)
from ..core.models import RecordType, SignedInUser, SignInOutcome, SyncCompleteEvent
from .collections import ItemCollection, RecipeCollection, TemplateCollection, generate_item_id
from .firestore_client import SyncFirestoreClient
from .local_store import LocalStore


logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncCompleteEvent], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Sync operations for one device.

    Owns no user state: every operation takes the user id explicitly, so a
    single engine serves successive sign-ins on the same device.
    """

    def __init__(
        self,
        remote: SyncFirestoreClient,
        local: LocalStore,
        recipes: RecipeCollection | None = None,
        templates: TemplateCollection | None = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = generate_item_id,
    ) -> None:
        """Initialize sync engine.

        Args:
            remote: Firestore client for the user document tree
            local: Local key-value store
            recipes: Local recipe collection
            templates: Local template collection
            clock: Returns the current time (UTC); also decides "today"
            id_factory: Generates ids for downloaded items that lack one
        """
        self.remote = remote
        self.local = local
        self.recipes = recipes if recipes is not None else RecipeCollection()
        self.templates = templates if templates is not None else TemplateCollection()
        self._clock = clock
        self._id_factory = id_factory
        self._listeners: list[SyncListener] = []

    @property
    def enabled(self) -> bool:
        return self.remote.is_configured

    def now(self) -> datetime:
        return self._clock()

    # ==================== Notifications ====================

    def add_sync_listener(self, listener: SyncListener) -> None:
        """Register a callback fired after each completed bulk sync."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def _mark_synced(self) -> SyncCompleteEvent:
        """Persist the last sync time and notify listeners."""
        event = SyncCompleteEvent(time=self._clock())
        self.local.save_last_sync_time(event.time)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Sync listener failed")
        return event

    def _today(self) -> str:
        return day_key(self._clock())

    # ==================== Sign-in Reconciliation ====================

    async def sync_on_sign_in(self, user: SignedInUser | None) -> SignInOutcome:
        """Decide between download, upload or nothing for a fresh sign-in.

        Remote profile exists -> download everything (cloud wins).
        No remote profile but local data -> upload everything (migration).
        Neither -> nothing to do.

        Args:
            user: The signed-in user

        Returns:
            Which branch was taken
        """
        if user is None or not self.enabled:
            return SignInOutcome.SKIPPED

        user_id = user.uid
        if await self.remote.document_exists(user_id, RecordType.PROFILE):
            logger.info("Remote profile found, downloading for user: %s", user_id[:8])
            await self.sync_from_cloud(user_id)
            return SignInOutcome.DOWNLOADED

        if self.local.has_local_data():
            logger.info("No remote profile, migrating local data for user: %s", user_id[:8])
            await self.upload_local_to_cloud(user_id)
            return SignInOutcome.UPLOADED

        logger.info("Nothing to sync for new user: %s", user_id[:8])
        return SignInOutcome.NOTHING_TO_SYNC

    # ==================== Bulk Upload ====================

    async def upload_local_to_cloud(self, user_id: str) -> None:
        """Push every local record type to the cloud.

        Flat record types are committed in one atomic batch; a commit failure
        propagates so the caller can offer a retry. The remote foodLog is read
        first so only today's key is replaced. Recipes and templates are
        pushed afterwards, best effort.

        Args:
            user_id: The user's ID
        """
        if not user_id or not self.enabled:
            return

        updated_at = format_timestamp(self._clock())
        today = self._today()
        food_log = await self.remote.get_document(user_id, RecordType.FOOD_LOG)
        documents = [
            (
                record_type,
                build_document(
                    record_type,
                    self.local.load_record(record_type),
                    updated_at,
                    today,
                    existing=food_log if record_type is RecordType.FOOD_LOG else None,
                ),
            )
            for record_type in BATCH_RECORD_TYPES
        ]

        await self.remote.commit_batch(user_id, documents)
        self._mark_synced()

        try:
            await self.sync_recipes_to_cloud(user_id, await self.recipes.get_all())
            await self.sync_templates_to_cloud(user_id, await self.templates.get_user_templates())
        except Exception as e:
            logger.error("Recipe/template upload failed: %s", str(e))

    # ==================== Bulk Download ====================

    async def sync_from_cloud(self, user_id: str) -> bool:
        """Pull every record type from the cloud and overwrite local state.

        Recipes and templates are merged into their collections by id rather
        than replaced. Errors are logged, never raised.

        Args:
            user_id: The user's ID

        Returns:
            True if the pass completed
        """
        if not user_id or not self.enabled:
            return False

        try:
            flat = {
                record_type: await self.remote.get_document(user_id, record_type)
                for record_type in BATCH_RECORD_TYPES
            }
            for record_type, document in flat.items():
                if document is not None:
                    self._apply_document(record_type, document)

            await self._merge_items(user_id, RecordType.RECIPES, self.recipes)
            await self._merge_items(user_id, RecordType.TEMPLATES, self.templates)

            self._mark_synced()
            return True
        except Exception as e:
            logger.error("Cloud download failed for user %s: %s", user_id[:8], str(e))
            return False

    def _apply_document(self, record_type: RecordType, document: dict) -> None:
        """Hydrate local slots from one flat remote document."""
        if record_type is RecordType.PROFILE:
            for slot, value in split_profile(document).items():
                self.local.set(slot, value)
            if document.get("onboarding"):
                self.local.mark_onboarding_complete()
        elif record_type is RecordType.FOOD_LOG:
            day = extract_day(document, self._today())
            if day is not None:
                for field, slot in FOOD_LOG_FIELDS.items():
                    if day.get(field) is not None:
                        self.local.set(slot, day[field])
        elif record_type in (RecordType.FAVORITES, RecordType.RECENT_FOODS, RecordType.WEIGHT_LOG):
            self.local.save_record(record_type, unwrap_items(document))
        else:
            self.local.save_record(record_type, strip_updated_at(document))

    async def _merge_items(
        self, user_id: str, record_type: RecordType, collection: ItemCollection
    ) -> None:
        document = await self.remote.get_document(user_id, record_type)
        if document is None:
            return
        for item in unwrap_items(document):
            if isinstance(item, dict):
                await collection.save(ensure_item_id(item, self._id_factory))

    # ==================== Single-Record Push ====================

    async def sync_to_cloud(self, user_id: str, record_type: Any, payload: Any) -> None:
        """Write one changed record type to the cloud.

        foodLog is read-modify-write: only today's key is replaced so earlier
        days survive. Unknown record types are ignored.

        Args:
            user_id: The user's ID
            record_type: RecordType or its string tag
            payload: Local value for that record type

        Raises:
            Exception: Any transport failure, after logging it
        """
        if not user_id or not self.enabled:
            return
        parsed = RecordType.parse(record_type)
        if parsed is None:
            logger.debug("Ignoring unsynced record type: %s", record_type)
            return

        try:
            existing = None
            if parsed is RecordType.FOOD_LOG:
                existing = await self.remote.get_document(user_id, parsed)
            document = build_document(
                parsed,
                payload,
                format_timestamp(self._clock()),
                self._today(),
                existing=existing,
            )
            await self.remote.set_document(user_id, parsed, document)
        except Exception as e:
            logger.error("Push of %s failed: %s", parsed.value, str(e))
            raise

    async def fetch_record(self, user_id: str, record_type: RecordType) -> Any:
        """Read one record type back in its local payload form.

        Returns:
            The payload, or None when absent or sync is disabled
        """
        if not user_id or not self.enabled:
            return None
        document = await self.remote.get_document(user_id, record_type)
        if document is None:
            return None
        return extract_record(record_type, document, self._today())

    # ==================== Account Erasure ====================

    async def delete_user_cloud_data(self, user_id: str) -> None:
        """Delete every cloud document for a user.

        All deletions are attempted concurrently and awaited; individual
        failures are logged and never abort the others.
        """
        if not user_id or not self.enabled:
            return
        results = await asyncio.gather(
            *(self.remote.delete_document(user_id, doc) for doc in USER_DATA_DOCS),
            return_exceptions=True,
        )
        failed = [
            doc.value for doc, result in zip(USER_DATA_DOCS, results) if isinstance(result, BaseException)
        ]
        if failed:
            logger.warning(
                "Cloud data deletion incomplete for user %s: %s", user_id[:8], ", ".join(failed)
            )

    # ==================== Recipes & Templates ====================

    async def sync_recipes_to_cloud(self, user_id: str, recipes: list | None) -> None:
        """Replace the cloud recipe list. Failures are logged only."""
        if not user_id or not self.enabled:
            return
        try:
            await self.remote.set_document(
                user_id,
                RecordType.RECIPES,
                build_document(
                    RecordType.RECIPES, recipes, format_timestamp(self._clock()), self._today()
                ),
            )
        except Exception as e:
            logger.error("Recipe upload failed: %s", str(e))

    async def sync_templates_to_cloud(self, user_id: str, templates: list | None) -> None:
        """Replace the cloud template list with user-created templates only."""
        if not user_id or not self.enabled:
            return
        try:
            await self.remote.set_document(
                user_id,
                RecordType.TEMPLATES,
                build_document(
                    RecordType.TEMPLATES,
                    filter_user_templates(templates),
                    format_timestamp(self._clock()),
                    self._today(),
                ),
            )
        except Exception as e:
            logger.error("Template upload failed: %s", str(e))

    async def _load_items(self, user_id: str, record_type: RecordType) -> list | None:
        if not user_id or not self.enabled:
            return None
        try:
            document = await self.remote.get_document(user_id, record_type)
        except Exception as e:
            logger.error("Loading %s from cloud failed: %s", record_type.value, str(e))
            return None
        return unwrap_items(document) if document is not None else None

    async def load_recipes_from_cloud(self, user_id: str) -> list | None:
        """Cloud recipe list, or None if absent, disabled or unreachable."""
        return await self._load_items(user_id, RecordType.RECIPES)

    async def load_templates_from_cloud(self, user_id: str) -> list | None:
        """Cloud template list, or None if absent, disabled or unreachable."""
        return await self._load_items(user_id, RecordType.TEMPLATES)
