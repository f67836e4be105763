"""
Character-concept generator page.

Generates a short random character concept ("A shy fox who sings everything")
and keeps a list of saved favourites. The favourites live in the key-value
settings store, not in the relational store; every mutation rewrites the
whole list through a PersistArtifacts request.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Union

from gui.messages import PageId
from gui.notifications import NotificationLevel
from gui.pages.base import DataChanged, LoadData, LoadStatus, Notify
from gui.settings_store import SavedArtifact
from gui.tasks import TaskFailure, TaskResult
from kit_engine.clock import Clock, SystemClock

ATTRIBUTES = (
    "short",
    "tall",
    "nervous",
    "brave",
    "shy",
    "curious",
    "friendly",
    "aloof",
    "clever",
    "clumsy",
    "energetic",
    "sleepy",
    "grumpy",
    "optimistic",
    "pessimistic",
    "cunning",
    "kind",
    "sarcastic",
)

SPECIES = (
    "cat",
    "dog",
    "fox",
    "wolf",
    "rabbit",
    "horse",
    "dragon",
    "lion",
    "tiger",
    "deer",
    "bat",
    "snake",
)

CHARACTERISTICS = (
    "with a mohawk",
    "who refuses to wear pants",
    "who is always eating waffles",
    "with too many earrings",
    "who always wears a cape",
    "with a tiny squeak of a voice",
    "who is overly dramatic",
    "who is secretly a nerd",
    "who philosophises about everything",
    "who sings everything",
    "with a huge hat collection",
    "who talks in emoji",
    "who collects bad jokes",
    "with a long ponytail",
    "who sparkles",
)


def generate_concept(rng: random.Random) -> str:
    """Return one random concept: attribute, species and characteristic."""
    return (
        f"A {rng.choice(ATTRIBUTES)} {rng.choice(SPECIES)} "
        f"{rng.choice(CHARACTERISTICS)}"
    )


# --- Messages -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArtifactsLoaded:
    result: TaskResult[list[SavedArtifact]]


@dataclass(frozen=True, slots=True)
class Generate:
    pass


@dataclass(frozen=True, slots=True)
class SaveCurrent:
    pass


@dataclass(frozen=True, slots=True)
class DeleteArtifact:
    index: int


@dataclass(frozen=True, slots=True)
class PersistArtifacts:
    """Request: replace the stored list with artifacts."""

    artifacts: tuple[SavedArtifact, ...]


@dataclass(frozen=True, slots=True)
class ArtifactsSaved:
    result: TaskResult[None]


GeneratorMessage = Union[
    LoadData,
    ArtifactsLoaded,
    Generate,
    SaveCurrent,
    DeleteArtifact,
    PersistArtifacts,
    ArtifactsSaved,
]


@dataclass(frozen=True, slots=True)
class GeneratorView:
    status: LoadStatus
    current_text: str | None
    artifacts: tuple[SavedArtifact, ...]
    saving: bool
    error: TaskFailure | None

    @property
    def can_save(self) -> bool:
        return self.current_text is not None


class GeneratorPage:
    """
    State container for the generator page.

    Parameters
    ----------
    clock:
        Source of SavedArtifact timestamps.
    rng:
        Random source for generation. Inject a seeded instance for
        deterministic output.
    """

    page_id = PageId.GENERATOR
    requires_data = True
    # The saved list is authoritative in memory once loaded.
    reload_on_activate = False

    def __init__(self, clock: Clock | None = None, rng: random.Random | None = None) -> None:
        self._clock = clock if clock is not None else SystemClock()
        self._rng = rng if rng is not None else random.Random()
        self.current_text: str | None = None
        self.artifacts: list[SavedArtifact] = []
        self.load_status = LoadStatus.NOT_LOADED
        self.error: TaskFailure | None = None
        self.pending_saves = 0

    def view(self) -> GeneratorView:
        return GeneratorView(
            status=self.load_status,
            current_text=self.current_text,
            artifacts=tuple(self.artifacts),
            saving=self.pending_saves > 0,
            error=self.error,
        )

    def update(self, message: Any) -> list[Any]:
        if isinstance(message, LoadData):
            self.load_status = LoadStatus.LOADING
            return []

        if isinstance(message, ArtifactsLoaded):
            if not message.result.ok:
                self.load_status = LoadStatus.FAILED
                self.error = message.result.failure
                return []
            # A queued whole-list save will overwrite disk with the in-memory list.
            if self.pending_saves == 0:
                self.artifacts = list(message.result.value or [])
            self.load_status = LoadStatus.LOADED
            self.error = None
            return []

        if isinstance(message, Generate):
            self.current_text = generate_concept(self._rng)
            return []

        if isinstance(message, SaveCurrent):
            if self.current_text is None:
                return []
            self.artifacts.append(SavedArtifact.new(self.current_text, self._clock))
            return self._persist()

        if isinstance(message, DeleteArtifact):
            if not 0 <= message.index < len(self.artifacts):
                return [Notify("Nothing saved at that position.", NotificationLevel.ERROR)]
            del self.artifacts[message.index]
            return self._persist()

        if isinstance(message, ArtifactsSaved):
            self.pending_saves = max(0, self.pending_saves - 1)
            if message.result.ok:
                return [Notify("Saved favourites updated.", NotificationLevel.SUCCESS)]
            failure = message.result.failure
            detail = failure.message if failure is not None else "unknown error"
            # Disk and memory may now disagree; reload to resync.
            return [
                Notify(f"Saving favourites failed: {detail}", NotificationLevel.ERROR),
                DataChanged(),
            ]

        return []

    def _persist(self) -> list[Any]:
        # Counted when issued so a load finishing before the save starts cannot
        # replace the list.
        self.pending_saves += 1
        return [PersistArtifacts(tuple(self.artifacts))]
