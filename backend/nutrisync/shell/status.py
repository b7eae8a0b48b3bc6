"""Sync Status - Observable sync state for the status indicator."""

import logging
from datetime import datetime, timezone

from ..core.documents import parse_timestamp
from ..core.models import SyncCompleteEvent, SyncStatus, SyncStatusSnapshot
from .local_store import LocalStore


logger = logging.getLogger(__name__)


def format_last_sync(moment: datetime | None, now: datetime | None = None) -> str | None:
    """Render a last-synced time relative to now.

    Args:
        moment: Last sync time (None if never synced)
        now: Reference time (defaults to current UTC time)

    Returns:
        "Just now", "Xm ago", "Xh ago", "Xd ago", or None
    """
    if moment is None:
        return None
    now = now or datetime.now(timezone.utc)
    minutes = int((parse_timestamp(now) - parse_timestamp(moment)).total_seconds() // 60)
    hours = minutes // 60
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


class SyncStatusReporter:
    """Tracks idle/syncing/success/error and the last sync time.

    The last sync time is restored from the local store on construction and
    written back whenever it changes.
    """

    def __init__(self, local: LocalStore) -> None:
        self._local = local
        self.status = SyncStatus.IDLE
        self.last_sync_time: datetime | None = local.load_last_sync_time()

    def set_status(self, status: SyncStatus) -> None:
        if status is not self.status:
            logger.debug("Sync status: %s -> %s", self.status.value, status.value)
        self.status = status

    def set_last_sync_time(self, moment: datetime | str) -> None:
        """Record and persist a successful sync time."""
        parsed = parse_timestamp(moment)
        if parsed is None:
            logger.warning("Ignoring invalid sync time: %r", moment)
            return
        self.last_sync_time = parsed
        self._local.save_last_sync_time(parsed)

    def on_sync_complete(self, event: SyncCompleteEvent) -> None:
        """Listener for the engine's sync-complete notifications."""
        self.last_sync_time = parse_timestamp(event.time)

    def reset(self) -> None:
        """Return to idle, keeping the last sync time."""
        self.status = SyncStatus.IDLE

    def snapshot(
        self, user_id: str | None = None, now: datetime | None = None
    ) -> SyncStatusSnapshot:
        return SyncStatusSnapshot(
            status=self.status,
            last_sync_time=self.last_sync_time,
            last_sync_label=format_last_sync(self.last_sync_time, now),
            signed_in=user_id is not None,
            user_id=user_id,
        )
