"""
Key-value settings store.

Lightweight, whole-value-replace persistence that lives outside the relational
store. Each key is one JSON file under the versioned config root; a write
replaces the entire value atomically (temp file + os.replace). There are no
partial updates and no change notifications: the app is the only writer and
re-reads values at startup or page load.

Keys
----
settings:
    GuiSettings (start page, log level).
saved_artifacts:
    The ordered list of SavedArtifact records, rewritten on every mutation.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kit_engine.clock import Clock
from kit_engine.errors import CosmikitError
from kit_engine.paths import default_config_root

SETTINGS_KEY = "settings"
SAVED_ARTIFACTS_KEY = "saved_artifacts"

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class SettingsStoreError(CosmikitError):
    """Raised when a stored value cannot be read or written."""


class ConfigStore:
    """
    JSON-file-per-key store.

    Parameters
    ----------
    root:
        Directory holding one `<key>.json` file per key. Defaults to the
        platform config root.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = root if root is not None else default_config_root()

    def _key_path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise SettingsStoreError(f"Invalid settings key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the stored value for key, or default when the key is absent.

        Raises
        ------
        SettingsStoreError
            If the stored file exists but cannot be read or parsed.
        """
        path = self._key_path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return default
        except OSError as exc:
            raise SettingsStoreError(f"Cannot read {path}: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SettingsStoreError(f"Corrupt settings value {key!r}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        """Replace the stored value for key atomically."""
        path = self._key_path(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8", newline="\n") as handle:
                json.dump(value, handle, indent=2, sort_keys=True)
                handle.write("\n")
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            temp_path.unlink(missing_ok=True)
            raise SettingsStoreError(f"Cannot write {path}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class SavedArtifact:
    """
    A saved, user-generated text snippet.

    Attributes
    ----------
    text:
        Opaque content.
    created_at:
        Seconds since the Unix epoch, taken from the injected Clock.
    """

    text: str
    created_at: int

    @staticmethod
    def new(text: str, clock: Clock) -> "SavedArtifact":
        return SavedArtifact(text=text, created_at=clock.now())


def load_saved_artifacts(store: ConfigStore) -> list[SavedArtifact]:
    """
    Load the whole saved-artifact list.

    Returns
    -------
    list[SavedArtifact]
        Stored artifacts in their saved order; empty if none were saved yet.

    Raises
    ------
    SettingsStoreError
        If the stored list is unreadable or malformed.
    """
    payload = store.get(SAVED_ARTIFACTS_KEY, default=[])
    if not isinstance(payload, list):
        raise SettingsStoreError("saved_artifacts must be a list.")
    out: list[SavedArtifact] = []
    for item in payload:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str):
            raise SettingsStoreError(f"Malformed saved artifact: {item!r}")
        out.append(SavedArtifact(text=item["text"], created_at=int(item.get("created_at", 0))))
    return out


def save_saved_artifacts(store: ConfigStore, artifacts: list[SavedArtifact]) -> None:
    """Replace the whole saved-artifact list."""
    store.set(
        SAVED_ARTIFACTS_KEY,
        [{"text": a.text, "created_at": a.created_at} for a in artifacts],
    )


@dataclass(frozen=True, slots=True)
class GuiSettings:
    """
    Persisted GUI settings.

    Notes
    -----
    start_page holds a gui.messages.PageId value. It is kept as a plain string
    here so this module stays independent of the dispatch loop.
    """

    start_page: str
    log_level: str

    @staticmethod
    def defaults() -> "GuiSettings":
        return GuiSettings(start_page="project_manager", log_level="INFO")


def load_gui_settings(store: ConfigStore, *, known_pages: tuple[str, ...] = ()) -> GuiSettings:
    """
    Load GUI settings.

    Parameters
    ----------
    store:
        Settings store.
    known_pages:
        Valid start_page values. An unknown stored page falls back to the default.

    Returns
    -------
    GuiSettings
        Loaded settings, or defaults if missing/unreadable.
    """
    defaults = GuiSettings.defaults()
    try:
        payload = store.get(SETTINGS_KEY, default=None)
    except SettingsStoreError:
        return defaults
    if not isinstance(payload, dict):
        return defaults

    start_page = payload.get("start_page", defaults.start_page)
    if not isinstance(start_page, str) or (known_pages and start_page not in known_pages):
        start_page = defaults.start_page

    log_level = str(payload.get("log_level", defaults.log_level)).upper()
    if log_level not in LOG_LEVELS:
        log_level = defaults.log_level

    return GuiSettings(start_page=start_page, log_level=log_level)


def save_gui_settings(store: ConfigStore, settings: GuiSettings) -> None:
    """Save GUI settings."""
    store.set(
        SETTINGS_KEY,
        {"start_page": settings.start_page, "log_level": settings.log_level},
    )
