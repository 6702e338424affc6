"""Filesystem storage for scripts."""

from .file_store import FileScriptStore

__all__ = ["FileScriptStore"]
