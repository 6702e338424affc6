"""Tests for filesystem script storage."""

import errno
import json
import os
import shutil

import pytest

from cog.domain.scripts import ScriptDescriptor, StorageError


def descriptor(script_id="abc", **overrides):
    values = dict(
        id=script_id,
        name="hello",
        runtime="python",
        entrypoint="main.py",
        created=1_700_000_000,
        updated=1_700_000_100,
        webhook_enabled=True,
        cron_enabled=True,
        cron_schedule="*/5 * * * *",
        timeout_ms=1000,
    )
    values.update(overrides)
    return ScriptDescriptor(**values)


class TestFileScriptStore:
    def test_create_writes_source_and_descriptor(self, store):
        item = descriptor()

        store.create(item, "print('hi')\n")

        script_dir = store.root / "abc"
        assert (script_dir / "main.py").read_text() == "print('hi')\n"
        record = json.loads((script_dir / ".cog").read_text())
        assert record == {
            "id": "abc",
            "created": 1_700_000_000,
            "updated": 1_700_000_100,
            "name": "hello",
            "runtime": "python",
            "webhook": True,
            "cron": True,
            "cronSchedule": "*/5 * * * *",
            "entrypoint": "main.py",
            "timeout": 1000,
        }

    def test_create_refuses_existing_directory(self, store):
        store.create(descriptor(), "")

        with pytest.raises(StorageError):
            store.create(descriptor(), "")

    def test_load_all_round_trip(self, store):
        item = descriptor()
        store.create(item, "")

        assert store.load_all() == [item]

    def test_load_all_orders_by_creation(self, store):
        store.create(descriptor("zzz", created=1), "")
        store.create(descriptor("aaa", created=2), "")

        assert [item.id for item in store.load_all()] == ["zzz", "aaa"]

    def test_load_all_skips_broken_entries(self, store, caplog):
        store.create(descriptor("good"), "")
        (store.root / "no-descriptor").mkdir()
        (store.root / "bad-json").mkdir()
        (store.root / "bad-json" / ".cog").write_text("{not json")
        (store.root / "missing-fields").mkdir()
        (store.root / "missing-fields" / ".cog").write_text(json.dumps({"id": "missing-fields"}))
        (store.root / "stray-file.txt").write_text("ignored")

        loaded = store.load_all()

        assert [item.id for item in loaded] == ["good"]
        assert "no-descriptor is missing .cog file" in caplog.text
        assert "bad-json has an unreadable descriptor" in caplog.text

    def test_load_all_reads_form_style_flags(self, store):
        script_dir = store.root / "legacy"
        script_dir.mkdir()
        (script_dir / ".cog").write_text(
            json.dumps(
                {
                    "id": "legacy",
                    "created": 10,
                    "updated": 10,
                    "name": "legacy",
                    "runtime": "nodejs",
                    "webhook": "on",
                    "cron": None,
                    "entrypoint": "app.js",
                    "timeout": 30000,
                }
            )
        )

        (item,) = store.load_all()

        assert item.webhook_enabled is True
        assert item.cron_enabled is False
        assert item.cron_schedule is None

    def test_load_all_without_root(self, tmp_path):
        from cog.infrastructure.storage import FileScriptStore

        assert FileScriptStore(tmp_path / "absent").load_all() == []

    def test_read_and_write_entrypoint(self, store):
        item = descriptor()
        store.create(item, "v1")

        store.write_entrypoint(item, "v2")

        assert store.read_entrypoint(item) == "v2"

    def test_entrypoint_cannot_escape_script_directory(self, store):
        item = descriptor(entrypoint="../../outside.py")

        with pytest.raises(StorageError):
            store.entrypoint_path(item)

    def test_script_id_cannot_escape_root(self, store):
        with pytest.raises(StorageError):
            store.script_dir("../elsewhere")

    def test_remove_all(self, store):
        store.create(descriptor(), "")

        store.remove_all("abc")

        assert not (store.root / "abc").exists()

    def test_remove_all_tolerates_missing_directory(self, store):
        store.create(descriptor(), "")
        shutil.rmtree(store.root / "abc")

        store.remove_all("abc")

    def test_remove_all_survives_partial_cleanup(self, store, monkeypatch):
        store.create(descriptor(), "")
        real_rmdir = os.rmdir

        def stubborn_rmdir(path, *args, **kwargs):
            if os.fspath(path).endswith(".deleting"):
                raise OSError(errno.ENOTEMPTY, "Directory not empty")
            return real_rmdir(path, *args, **kwargs)

        monkeypatch.setattr(os, "rmdir", stubborn_rmdir)
        store.remove_all("abc")
        monkeypatch.undo()

        assert not (store.root / "abc").exists()
        assert store.load_all() == []
        assert [entry.name for entry in store.root.iterdir()] == []

    def test_remove_all_rename_failure_keeps_script(self, store, monkeypatch):
        item = descriptor()
        store.create(item, "print(1)")

        def failing_rename(src, dst, *args, **kwargs):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(os, "rename", failing_rename)

        with pytest.raises(StorageError):
            store.remove_all("abc")
        monkeypatch.undo()
        assert store.load_all() == [item]
        assert store.read_entrypoint(item) == "print(1)"
