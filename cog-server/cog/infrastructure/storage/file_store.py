"""Filesystem persistence for script sources and descriptors."""

from __future__ import annotations

import json
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import List

from cog.domain.scripts.exceptions import StorageError
from cog.domain.scripts.models import DESCRIPTOR_FILE_NAME, ScriptDescriptor

logger = logging.getLogger(__name__)

TOMBSTONE_PREFIX = "."


class FileScriptStore:
    """Keeps each script in its own directory under ``root``.

    Layout::

        <root>/<script id>/.cog          descriptor JSON
        <root>/<script id>/<entrypoint>  script source
    """

    def __init__(self, root: Path):
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def ensure_storage(self) -> None:
        """Create the storage directory if it does not exist."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not create script storage at {self._root}") from exc

    def script_dir(self, script_id: str) -> Path:
        path = (self._root / script_id).resolve()
        if path.parent != self._root.resolve():
            raise StorageError(f"Invalid script id: {script_id!r}")
        return path

    def entrypoint_path(self, descriptor: ScriptDescriptor) -> Path:
        script_dir = self.script_dir(descriptor.id)
        path = (script_dir / descriptor.entrypoint).resolve()
        if not path.is_relative_to(script_dir):
            raise StorageError(f"Entrypoint of script {descriptor.id} escapes its directory")
        return path

    def load_all(self) -> List[ScriptDescriptor]:
        if not self._root.exists():
            return []
        self._sweep_tombstones()
        descriptors: List[ScriptDescriptor] = []
        for entry in sorted(self._root.iterdir()):
            if not entry.is_dir() or entry.name.startswith(TOMBSTONE_PREFIX):
                continue
            descriptor_path = entry / DESCRIPTOR_FILE_NAME
            if not descriptor_path.exists():
                logger.warning("Script %s is missing %s file, skipping", entry.name, DESCRIPTOR_FILE_NAME)
                continue
            try:
                payload = json.loads(descriptor_path.read_text(encoding="utf-8"))
                if not isinstance(payload, dict):
                    raise ValueError("descriptor must be a JSON object")
                descriptor = ScriptDescriptor.from_mapping(payload)
            except (OSError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Script %s has an unreadable descriptor, skipping: %s", entry.name, exc)
                continue
            if descriptor.id != entry.name:
                logger.warning(
                    "Script directory %s holds descriptor for %s, skipping", entry.name, descriptor.id
                )
                continue
            descriptors.append(descriptor)
        descriptors.sort(key=lambda item: item.created)
        return descriptors

    def create(self, descriptor: ScriptDescriptor, source: str) -> None:
        script_dir = self.script_dir(descriptor.id)
        try:
            script_dir.mkdir(parents=True)
        except FileExistsError as exc:
            raise StorageError(f"Storage for script {descriptor.id} already exists") from exc
        except OSError as exc:
            raise StorageError(f"Could not create storage for script {descriptor.id}") from exc
        try:
            self.write_entrypoint(descriptor, source)
            self.write_descriptor(descriptor)
        except StorageError:
            shutil.rmtree(script_dir, ignore_errors=True)
            raise

    def write_descriptor(self, descriptor: ScriptDescriptor) -> None:
        path = self.script_dir(descriptor.id) / DESCRIPTOR_FILE_NAME
        temp_path = path.with_name(path.name + ".tmp")
        try:
            temp_path.write_text(json.dumps(descriptor.to_mapping(), indent=4), encoding="utf-8")
            temp_path.replace(path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Writing descriptor of script {descriptor.id} failed") from exc

    def write_entrypoint(self, descriptor: ScriptDescriptor, source: str) -> None:
        path = self.entrypoint_path(descriptor)
        try:
            path.write_text(source, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Writing source of script {descriptor.id} failed") from exc

    def read_entrypoint(self, descriptor: ScriptDescriptor) -> str:
        path = self.entrypoint_path(descriptor)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Reading source of script {descriptor.id} failed") from exc

    def remove_all(self, script_id: str) -> None:
        """Delete the script directory; a directory that is already gone is not an error.

        The directory is first renamed to a dot-prefixed tombstone. Only a
        failed rename raises; once it succeeds the script is gone for good and
        whatever the cleanup leaves behind is swept on the next ``load_all``.
        """
        script_dir = self.script_dir(script_id)
        tombstone = self._root.resolve() / f"{TOMBSTONE_PREFIX}{script_id}.{uuid.uuid4().hex[:8]}.deleting"
        try:
            os.rename(script_dir, tombstone)
        except FileNotFoundError:
            logger.debug("Storage for script %s already removed", script_id)
            return
        except OSError as exc:
            raise StorageError(f"Removing storage of script {script_id} failed") from exc
        shutil.rmtree(tombstone, ignore_errors=True)
        if tombstone.exists():
            logger.warning("Leftovers of script %s remain in %s", script_id, tombstone.name)

    def _sweep_tombstones(self) -> None:
        for entry in self._root.iterdir():
            if entry.name.startswith(TOMBSTONE_PREFIX) and entry.is_dir():
                shutil.rmtree(entry, ignore_errors=True)
