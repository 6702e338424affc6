"""Tests for the in-memory script registry."""

import json

import pytest

from cog.domain.scripts import (
    DuplicateScriptError,
    ScriptDescriptor,
    ScriptNotFoundError,
    ScriptRegistry,
    StorageError,
)


def descriptor(script_id, name="script"):
    return ScriptDescriptor(
        id=script_id,
        name=name,
        runtime="python",
        entrypoint="main.py",
        created=1_700_000_000,
        updated=1_700_000_000,
    )


class TestRegistry:
    def test_find_returns_registered_descriptor(self, registry):
        item = descriptor("a")
        registry.register(item)

        assert registry.find("a") == item
        assert "a" in registry
        assert len(registry) == 1

    def test_duplicate_id_rejected(self, registry):
        registry.register(descriptor("a"))

        with pytest.raises(DuplicateScriptError):
            registry.register(descriptor("a", name="other"))
        assert registry.find("a").name == "script"

    def test_find_unknown(self, registry):
        with pytest.raises(ScriptNotFoundError):
            registry.find("missing")
        assert registry.get("missing") is None

    def test_list_keeps_insertion_order(self, registry):
        for script_id in ("b", "a", "c"):
            registry.register(descriptor(script_id, name=f"name-{script_id}"))

        summaries = registry.list()

        assert [item.id for item in summaries] == ["b", "a", "c"]
        assert summaries[0].name == "name-b"
        assert summaries[0].runtime == "python"

    def test_remove(self, registry):
        registry.register(descriptor("a"))

        removed = registry.remove("a")

        assert removed.id == "a"
        assert registry.list() == []
        with pytest.raises(ScriptNotFoundError):
            registry.remove("a")

    def test_update_refreshes_timestamp_and_persists(self, registry, store, monkeypatch):
        item = descriptor("a")
        store.create(item, "print('hi')\n")
        registry.register(item)
        monkeypatch.setattr("cog.domain.scripts.registry.now_epoch", lambda: 1_800_000_000)

        def rename(target):
            target.name = "renamed"

        updated = registry.update("a", rename)

        assert updated.name == "renamed"
        assert updated.updated == 1_800_000_000
        assert updated.created == 1_700_000_000
        assert registry.find("a") is updated
        on_disk = json.loads((store.root / "a" / ".cog").read_text())
        assert on_disk["name"] == "renamed"
        assert on_disk["updated"] == 1_800_000_000

    def test_update_keeps_old_record_when_storage_fails(self, store):
        class FailingStore:
            def write_descriptor(self, descriptor):
                raise StorageError("disk full")

        registry = ScriptRegistry(FailingStore())
        item = descriptor("a")
        registry.register(item)

        def rename(target):
            target.name = "renamed"

        with pytest.raises(StorageError):
            registry.update("a", rename)
        assert registry.find("a") is item
        assert item.name == "script"

    def test_update_cannot_change_id(self, registry, store):
        item = descriptor("a")
        store.create(item, "")
        registry.register(item)

        def change_id(target):
            target.id = "b"

        updated = registry.update("a", change_id)

        assert updated.id == "a"
        assert registry.get("b") is None
