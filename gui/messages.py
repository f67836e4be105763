"""
Top-level messages for the dispatch loop.

Page-local messages live in their page modules (gui.pages.project_manager,
gui.pages.generator). This module only combines them for routing: a
PageMessage names its target page explicitly, so a result that arrives after
the user switched pages still reaches the page that asked for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from gui.settings_store import GuiSettings
from gui.tasks import TaskResult
from kit_engine.store.api import ProjectDatabase


class PageId(str, Enum):
    """Pages hosted by the application shell."""

    PROJECT_MANAGER = "project_manager"
    GENERATOR = "generator"
    DICE_ROLLER = "dice_roller"


@dataclass(frozen=True, slots=True)
class PageMessage:
    """Envelope routing a page-local message to one page."""

    page: PageId
    message: Any


@dataclass(frozen=True, slots=True)
class DatabaseInitialized:
    """Result of the one-time storage initialization task."""

    result: TaskResult[ProjectDatabase]


@dataclass(frozen=True, slots=True)
class SwitchPage:
    """User selected another page in the navigation."""

    page: PageId


@dataclass(frozen=True, slots=True)
class DismissNotification:
    """Remove one notification by id."""

    notification_id: int


@dataclass(frozen=True, slots=True)
class SettingsLoaded:
    """Persisted GUI settings, read by the shell at startup."""

    result: TaskResult[GuiSettings]


Message = Union[
    PageMessage, DatabaseInitialized, SwitchPage, DismissNotification, SettingsLoaded
]
