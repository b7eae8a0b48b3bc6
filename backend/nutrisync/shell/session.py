"""Sync Session - Routes local mutations to the cloud while signed in.

Lifecycle:
    sign_in   -> reconcile (upload/download/nothing), then install a session
    mutation  -> local store write, then bridge.notify -> session push
    sign_out  -> clear the bridge and drop the session

The bridge holds at most one callback. Nothing here is module-global: the
manager owns its bridge, and each sign-in gets a fresh session object.
"""

import logging
from typing import Any, Awaitable, Callable

from ..core.documents import payload_error
from ..core.models import RecordType, SignedInUser, SignInOutcome, SyncStatus
from .status import SyncStatusReporter
from .sync_engine import SyncEngine


logger = logging.getLogger(__name__)

RecordChangedCallback = Callable[[RecordType, Any], Awaitable[None]]


class SyncBridge:
    """Single slot for the active on-record-changed callback."""

    def __init__(self) -> None:
        self._callback: RecordChangedCallback | None = None

    @property
    def is_installed(self) -> bool:
        return self._callback is not None

    def install(self, callback: RecordChangedCallback) -> None:
        """Install a callback, replacing any existing one."""
        self._callback = callback

    def clear(self) -> None:
        self._callback = None

    async def notify(self, record_type: RecordType, payload: Any) -> bool:
        """Forward a local mutation to the installed callback.

        Returns:
            True if a callback was installed and invoked
        """
        callback = self._callback
        if callback is None:
            return False
        await callback(record_type, payload)
        return True


class SyncSession:
    """Per-user mutation notifier, created on sign-in and dropped on sign-out.

    Push failures set the status to error instead of raising, so a local
    save never fails because the network did.
    """

    def __init__(
        self, user: SignedInUser, engine: SyncEngine, reporter: SyncStatusReporter
    ) -> None:
        self.user = user
        self.engine = engine
        self.reporter = reporter
        self.retrying = False

    @property
    def user_id(self) -> str:
        return self.user.uid

    async def on_record_changed(self, record_type: RecordType, payload: Any) -> None:
        if record_type is RecordType.RECIPES:
            await self.on_recipes_changed(payload)
            return
        if record_type is RecordType.TEMPLATES:
            await self.on_templates_changed(payload)
            return

        self.reporter.set_status(SyncStatus.SYNCING)
        try:
            await self.engine.sync_to_cloud(self.user_id, record_type, payload)
        except Exception as e:
            logger.warning("Sync of %s failed, awaiting retry: %s", record_type.value, str(e))
            self.reporter.set_status(SyncStatus.ERROR)
            return
        self.reporter.set_status(SyncStatus.SUCCESS)
        self.reporter.set_last_sync_time(self.engine.now())

    async def on_recipes_changed(self, recipes: list) -> None:
        await self.engine.sync_recipes_to_cloud(self.user_id, recipes)

    async def on_templates_changed(self, templates: list) -> None:
        await self.engine.sync_templates_to_cloud(self.user_id, templates)

    async def retry(self) -> bool:
        """Re-upload the whole local snapshot after a failed sync.

        A retry requested while another is in flight is dropped.

        Returns:
            True if the upload succeeded
        """
        if self.retrying:
            logger.info("Sync retry already in progress, ignoring")
            return False
        self.retrying = True
        self.reporter.set_status(SyncStatus.SYNCING)
        try:
            await self.engine.upload_local_to_cloud(self.user_id)
        except Exception as e:
            logger.error("Manual sync retry failed: %s", str(e))
            self.reporter.set_status(SyncStatus.ERROR)
            return False
        finally:
            self.retrying = False
        self.reporter.set_status(SyncStatus.SUCCESS)
        self.reporter.set_last_sync_time(self.engine.now())
        return True


class SessionManager:
    """Owns the bridge and the active session for one device."""

    def __init__(
        self,
        engine: SyncEngine,
        reporter: SyncStatusReporter | None = None,
        bridge: SyncBridge | None = None,
    ) -> None:
        self.engine = engine
        self.reporter = reporter or SyncStatusReporter(engine.local)
        self.bridge = bridge or SyncBridge()
        self.session: SyncSession | None = None
        engine.add_sync_listener(self.reporter.on_sync_complete)

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session else None

    async def sign_in(self, user: SignedInUser) -> SignInOutcome:
        """Reconcile with the cloud, then start routing mutations for user.

        A sign-in replaces any existing session. The session is installed even
        when reconciliation fails, so later mutations still attempt to sync.

        Raises:
            Exception: If the existence check or migration upload fails
        """
        self.sign_out()
        session = SyncSession(user, self.engine, self.reporter)
        self.session = session
        self.bridge.install(session.on_record_changed)
        logger.info("Signed in user: %s", user.uid[:8])

        self.reporter.set_status(SyncStatus.SYNCING)
        try:
            outcome = await self.engine.sync_on_sign_in(user)
        except Exception:
            self.reporter.set_status(SyncStatus.ERROR)
            raise
        self.reporter.set_status(
            SyncStatus.SUCCESS
            if outcome in (SignInOutcome.DOWNLOADED, SignInOutcome.UPLOADED)
            else SyncStatus.IDLE
        )
        return outcome

    def sign_out(self) -> None:
        """Stop routing mutations to the cloud."""
        if self.session is not None:
            logger.info("Signed out user: %s", self.session.user_id[:8])
        self.bridge.clear()
        self.session = None
        self.reporter.reset()

    async def save_local(self, record_type: RecordType, payload: Any) -> Any:
        """Write a mutation to local storage and return what should be pushed.

        Recipes and templates take a single item, which is upserted into its
        collection; the full collection is returned for pushing.
        """
        if record_type is RecordType.RECIPES:
            await self.engine.recipes.save(payload)
            return await self.engine.recipes.get_all()
        if record_type is RecordType.TEMPLATES:
            await self.engine.templates.save(payload)
            return await self.engine.templates.get_all()
        if not self.engine.local.save_record(record_type, payload):
            logger.warning("Local save of %s failed", record_type.value)
        return payload

    async def record_changed(self, record_type: RecordType, payload: Any) -> bool:
        """Persist a local mutation, then push it if signed in.

        Returns:
            False if the payload was rejected; nothing is saved or pushed then
        """
        error = payload_error(record_type, payload)
        if error is not None:
            logger.warning("Rejected %s mutation: %s", record_type.value, error)
            return False
        await self.bridge.notify(record_type, await self.save_local(record_type, payload))
        return True

    async def retry(self) -> bool:
        """Manual retry of the full upload. False when signed out or on failure."""
        if self.session is None:
            return False
        return await self.session.retry()

    async def delete_account(self) -> None:
        """Erase the signed-in user's cloud data and sign out."""
        if self.session is None:
            return
        await self.engine.delete_user_cloud_data(self.session.user_id)
        self.sign_out()
