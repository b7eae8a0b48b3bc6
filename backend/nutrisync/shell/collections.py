"""Recipe/Template Collections - Async id-keyed item stores.

Recipes and user templates live outside the flat key-value slots. Items are
plain dicts keyed by their "id" field; saving an item with an existing id
replaces it (upsert).
"""

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


def generate_item_id() -> str:
    """Generate an id for an item that arrived without one."""
    return str(uuid.uuid4())


class ItemCollection:
    """Ordered collection of dict items with upsert-by-id semantics.

    When a path is given the collection is persisted as a JSON list and
    reloaded on construction; otherwise it lives in memory.
    """

    def __init__(self, name: str, path: str | Path | None = None) -> None:
        """Initialize collection.

        Args:
            name: Collection name used in logs (e.g. "recipes")
            path: Optional JSON file backing the collection
        """
        self.name = name
        self.path = Path(path) if path else None
        self._lock = asyncio.Lock()
        self._items: dict[str, dict] = self._load()

    def _load(self) -> dict[str, dict]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to read %s collection: %s", self.name, str(e))
            return {}
        return {
            str(item["id"]): item
            for item in data
            if isinstance(item, dict) and item.get("id") is not None
        }

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(list(self._items.values())), encoding="utf-8")
        os.replace(tmp, self.path)

    async def get_all(self) -> list[dict]:
        """Return copies of all items in insertion order."""
        async with self._lock:
            return [dict(item) for item in self._items.values()]

    async def save(self, item: dict) -> dict:
        """Insert or replace an item by id.

        Args:
            item: The item to store (an id is generated if missing)

        Returns:
            The stored item
        """
        stored = dict(item)
        if stored.get("id") in (None, ""):
            stored["id"] = generate_item_id()
        async with self._lock:
            self._items[str(stored["id"])] = stored
            self._flush()
        logger.debug("Saved %s item %s", self.name, stored["id"])
        return dict(stored)

    async def delete(self, item_id: Any) -> bool:
        """Remove an item. Returns True if it existed."""
        async with self._lock:
            removed = self._items.pop(str(item_id), None) is not None
            if removed:
                self._flush()
        return removed


class RecipeCollection(ItemCollection):
    """User recipes."""

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__("recipes", path)


class TemplateCollection(ItemCollection):
    """Meal templates. Prebuilt templates are flagged with isPrebuilt."""

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__("templates", path)

    async def get_user_templates(self) -> list[dict]:
        """Templates created by the user (prebuilt ones excluded)."""
        return [t for t in await self.get_all() if not t.get("isPrebuilt")]
