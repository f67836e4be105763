"""
Filesystem path policy.

This module is the single choke point for determining where Cosmikit reads
and writes its local data:

- The relational store lives under a per-application data root.
- Lightweight settings live under a separate, versioned config root.

Nothing in the engine should compute these locations on its own.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import CosmikitError

APP_DIR_NAME = "cosmikit"

# Increment when the relational schema changes incompatibly. A new version
# means a new database file, never a destructive migration of the old one.
DB_VERSION = "1"

CONFIG_VERSION = 1

DATA_ROOT_ENV = "COSMIKIT_DATA_ROOT"
CONFIG_ROOT_ENV = "COSMIKIT_CONFIG_ROOT"


@dataclass(frozen=True, slots=True)
class DataPaths:
    """
    Concrete resolved paths for local application data.

    Attributes
    ----------
    data_root:
        Root directory for all runtime data.
    database_path:
        The SQLite store file; its name encodes DB_VERSION.
    logs_root:
        Rotating log files.
    """

    data_root: Path
    database_path: Path
    logs_root: Path


class DataPathError(CosmikitError):
    """Raised when no usable data or config location can be determined."""


def database_filename(version: str = DB_VERSION) -> str:
    """Return the versioned database file name."""
    return f"{APP_DIR_NAME}-projects-v{version}.db"


def default_data_root() -> Path:
    """
    Resolve the default data root for the current platform.

    Preference order:
    1) $COSMIKIT_DATA_ROOT if set
    2) Windows: %LOCALAPPDATA%, then %APPDATA%
    3) macOS: ~/Library/Application Support
    4) Otherwise: $XDG_DATA_HOME, then ~/.local/share
    """
    override = os.environ.get(DATA_ROOT_ENV)
    if override:
        return Path(override)

    if sys.platform == "win32":
        for var in ("LOCALAPPDATA", "APPDATA"):
            value = os.environ.get(var)
            if value:
                return Path(value) / APP_DIR_NAME
        raise DataPathError("Neither LOCALAPPDATA nor APPDATA environment variables are set.")

    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME

    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else home / ".local" / "share"
    return base / APP_DIR_NAME


def default_config_root() -> Path:
    """
    Resolve the versioned config root for the current platform.

    The version segment mirrors CONFIG_VERSION so that an incompatible settings
    layout starts from defaults instead of misreading old values.
    """
    override = os.environ.get(CONFIG_ROOT_ENV)
    if override:
        return Path(override) / f"v{CONFIG_VERSION}"

    if sys.platform == "win32":
        value = os.environ.get("APPDATA")
        if not value:
            raise DataPathError("APPDATA environment variable is not set.")
        base = Path(value)
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Preferences"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg) if xdg else Path.home() / ".config"
    return base / APP_DIR_NAME / f"v{CONFIG_VERSION}"


def resolve_config_root(data_root: Path | None = None) -> Path:
    """
    Resolve the config root for an invocation.

    With a data_root override, settings live beside that data under
    `<data_root>/config/v<CONFIG_VERSION>` so an overridden run never touches the
    platform config. Otherwise this is default_config_root().
    """
    if data_root is None:
        return default_config_root()
    return data_root.expanduser().resolve() / "config" / f"v{CONFIG_VERSION}"


def resolve_data_paths(data_root: Path | None = None) -> DataPaths:
    """
    Resolve and return all data paths.

    Parameters
    ----------
    data_root:
        Optional override for the data root.

    Returns
    -------
    DataPaths
        Resolved paths. Nothing is created on disk.
    """
    root = (data_root or default_data_root()).expanduser().resolve()
    return DataPaths(
        data_root=root,
        database_path=root / database_filename(),
        logs_root=root / "logs",
    )


def ensure_data_directories(paths: DataPaths) -> None:
    """
    Create the data directories if they do not already exist.

    Notes
    -----
    This function creates directories only. It performs no deletion.
    """
    for directory in (paths.data_root, paths.logs_root):
        directory.mkdir(parents=True, exist_ok=True)


def data_paths_as_text(paths: DataPaths) -> str:
    """Render DataPaths as a readable multi-line string."""
    return "\n".join(
        (
            f"data_root: {paths.data_root}",
            f"database_path: {paths.database_path}",
            f"logs_root: {paths.logs_root}",
        )
    )
