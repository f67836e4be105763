"""Static page for features that are not built yet (dice roller)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gui.messages import PageId
from gui.pages.base import LoadStatus


@dataclass(frozen=True, slots=True)
class PlaceholderView:
    title: str
    body: str


class PlaceholderPage:
    requires_data = False
    reload_on_activate = False

    def __init__(self, page_id: PageId, title: str) -> None:
        self.page_id = page_id
        self.title = title
        self.load_status = LoadStatus.LOADED

    def view(self) -> PlaceholderView:
        return PlaceholderView(title=self.title, body="Coming soon.")

    def update(self, message: Any) -> list[Any]:
        return []
