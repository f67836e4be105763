"""Storage initialization.

Creates the data directories and the migrated database file without starting
the GUI. Used by `cosmikit init`. Nothing is deleted.
"""

from __future__ import annotations

from pathlib import Path

from .paths import DataPaths, ensure_data_directories, resolve_data_paths
from .store.sqlite_store import open_database_sync


def init_storage(data_root: Path | None = None) -> DataPaths:
    """Create the data directories and the database, applying migrations.

    Parameters
    ----------
    data_root:
        Optional override for the data root. If not provided, the default
        data root resolver is used.

    Returns
    -------
    DataPaths
        The resolved paths that were initialized.

    Raises
    ------
    StorageIOError
        If the directories or the database cannot be created.
    MigrationError
        If a migration step fails.
    """
    paths = resolve_data_paths(data_root)
    ensure_data_directories(paths)
    db = open_database_sync(paths.database_path)
    db.pool.close()
    return paths
