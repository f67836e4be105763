"""Shared page types: load status, loop-level follow-ups and the Page protocol."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from gui.messages import PageId
from gui.notifications import NotificationLevel


class LoadStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LoadData:
    """Start (re)loading the page's data. Issued by the loop, never by widgets."""


@dataclass(frozen=True, slots=True)
class DataChanged:
    """Follow-up: a write succeeded (or must be resynced); reload the page."""


@dataclass(frozen=True, slots=True)
class Notify:
    """Follow-up: raise a notification."""

    text: str
    level: NotificationLevel = NotificationLevel.INFO


class Page(Protocol):
    """
    Contract the dispatch loop relies on.

    Attributes
    ----------
    page_id:
        Routing identity.
    requires_data:
        Whether the page has a load at all.
    reload_on_activate:
        Whether switching to an already LOADED page reloads it.
    load_status:
        Owned by the page; read by the loop to avoid redundant loads.
    """

    page_id: PageId
    requires_data: bool
    reload_on_activate: bool
    load_status: LoadStatus

    def update(self, message: Any) -> list[Any]:
        """Apply one page-local message and return follow-ups."""
        ...

    def view(self) -> Any:
        """Return an immutable view-model of the current state."""
        ...
