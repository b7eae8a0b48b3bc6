"""Tests for recipe/template collections."""

import pytest

from nutrisync.shell.collections import RecipeCollection, TemplateCollection


class TestItemCollection:
    """Tests for upsert-by-id behavior."""

    @pytest.mark.asyncio
    async def test_save_generates_id(self):
        """Items without an id get one."""
        recipes = RecipeCollection()
        saved = await recipes.save({"name": "soup"})
        assert saved["id"]
        assert await recipes.get(saved["id"]) == saved

    @pytest.mark.asyncio
    async def test_save_replaces_same_id(self):
        """Saving an existing id replaces the item."""
        recipes = RecipeCollection()
        await recipes.save({"id": "r1", "name": "v1"})
        await recipes.save({"id": "r1", "name": "v2"})
        assert await recipes.get_all() == [{"id": "r1", "name": "v2"}]

    @pytest.mark.asyncio
    async def test_numeric_and_string_ids_match(self):
        """Ids are compared as strings."""
        recipes = RecipeCollection()
        await recipes.save({"id": 7, "name": "v1"})
        await recipes.save({"id": "7", "name": "v2"})
        assert await recipes.get_all() == [{"id": "7", "name": "v2"}]

    @pytest.mark.asyncio
    async def test_delete(self):
        """Deleting reports whether the item existed."""
        recipes = RecipeCollection()
        await recipes.save({"id": "r1"})
        assert await recipes.delete("r1") is True
        assert await recipes.delete("r1") is False

    @pytest.mark.asyncio
    async def test_returned_items_are_copies(self):
        """Mutating a returned item does not change the collection."""
        recipes = RecipeCollection()
        await recipes.save({"id": "r1", "name": "soup"})
        (await recipes.get_all())[0]["name"] = "changed"
        assert (await recipes.get_all())[0]["name"] == "soup"

    @pytest.mark.asyncio
    async def test_persists_to_file(self, tmp_path):
        """File-backed collections reload their items."""
        path = tmp_path / "recipes.json"
        await RecipeCollection(path).save({"id": "r1", "name": "chili"})
        assert await RecipeCollection(path).get_all() == [{"id": "r1", "name": "chili"}]


class TestTemplateCollection:
    """Tests for template-specific helpers."""

    @pytest.mark.asyncio
    async def test_user_templates_exclude_prebuilt(self):
        """Prebuilt templates are filtered out."""
        templates = TemplateCollection()
        await templates.save({"id": "t1", "isPrebuilt": True})
        await templates.save({"id": "t2"})
        assert await templates.get_user_templates() == [{"id": "t2"}]
