"""Shared fixtures: temporary script storage and engine components."""

import textwrap

import pytest

from cog.core.config import ExecutionSettings, SecuritySettings, Settings, StorageSettings
from cog.domain.scripts import ScriptDescriptor, ScriptRegistry, ScriptService
from cog.engine import CronScheduler, LauncherTable, ScriptExecutor
from cog.infrastructure.storage import FileScriptStore


@pytest.fixture
def store(tmp_path):
    store = FileScriptStore(tmp_path / "scripts")
    store.ensure_storage()
    return store


@pytest.fixture
def registry(store):
    return ScriptRegistry(store)


@pytest.fixture
def launchers():
    return LauncherTable.from_settings(ExecutionSettings())


@pytest.fixture
def executor(store, launchers):
    return ScriptExecutor(store, launchers)


@pytest.fixture
def scheduler(registry, executor):
    return CronScheduler(registry, executor)


@pytest.fixture
def service(store, registry, executor, scheduler):
    return ScriptService(store=store, registry=registry, executor=executor, scheduler=scheduler)


@pytest.fixture
def make_script(store):
    """Write a python script to storage and return its descriptor (not registered)."""

    def _make(
        source,
        *,
        script_id="s1",
        name="test script",
        timeout_ms=5000,
        webhook_enabled=True,
        cron_enabled=False,
        cron_schedule=None,
        runtime="python",
    ):
        descriptor = ScriptDescriptor(
            id=script_id,
            name=name,
            runtime=runtime,
            entrypoint="main.py",
            created=1_700_000_000,
            updated=1_700_000_000,
            webhook_enabled=webhook_enabled,
            cron_enabled=cron_enabled,
            cron_schedule=cron_schedule,
            timeout_ms=timeout_ms,
        )
        store.create(descriptor, textwrap.dedent(source))
        return descriptor

    return _make


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        storage=StorageSettings(data_dir=tmp_path / "data"),
        security=SecuritySettings(ui_login="admin", ui_secret="secret"),
        execution=ExecutionSettings(default_timeout_ms=5000),
    )
