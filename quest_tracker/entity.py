"""Shared behaviour of the quest and objective views."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from quest_tracker.models import EntityKind, NoteAudience
from quest_tracker.note import QuestNote

if TYPE_CHECKING:
    from quest_tracker.manager import QuestManager


class EntityView(ABC):
    """A stateless handle on one stored entity: just the manager and an id.

    Views never cache field values, so two views on the same id are
    interchangeable and always observe the latest committed data.
    """

    kind: ClassVar[EntityKind]

    def __init__(self, manager: QuestManager, entity_id: str) -> None:
        self._manager = manager
        self.id = entity_id

    @classmethod
    def new(cls, manager: QuestManager):
        """Allocate an id; nothing is stored until ``create`` is called."""
        return cls(manager, manager.identity.new_id())

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.id == self.id

    def __hash__(self) -> int:
        return hash((self.kind, self.id))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    @property
    def label(self) -> str:
        return type(self).__name__.lower()

    @abstractmethod
    def _attach_note(self, note_id: str, audience: NoteAudience) -> bool: ...

    @abstractmethod
    def _detach_note(self, note_id: str) -> bool: ...

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_player_notes(self) -> list[QuestNote]:
        return self._manager.get_notes(self.kind, self.id, NoteAudience.PLAYER)

    def get_director_notes(self) -> list[QuestNote]:
        return self._manager.get_notes(self.kind, self.id, NoteAudience.DIRECTOR)

    def add_player_note(
        self,
        content: str,
        author_id: str | None = None,
        visible_to_players: bool | None = None,
    ) -> QuestNote:
        """Player notes are visible unless told otherwise."""
        return self._add_note(content, NoteAudience.PLAYER, author_id, visible_to_players)

    def add_director_note(
        self,
        content: str,
        author_id: str | None = None,
        visible_to_players: bool | None = None,
    ) -> QuestNote:
        """Director notes stay hidden unless explicitly made visible."""
        return self._add_note(
            content, NoteAudience.DIRECTOR, author_id, visible_to_players
        )

    def remove_note(self, note_id: str) -> bool:
        return self._detach_note(note_id)

    def _add_note(
        self,
        content: str,
        audience: NoteAudience,
        author_id: str | None,
        visible_to_players: bool | None,
    ) -> QuestNote:
        if visible_to_players is None:
            visible_to_players = audience is NoteAudience.PLAYER
        properties: dict[str, Any] = {
            "content": content,
            "visibleToPlayers": visible_to_players,
        }
        if author_id is not None:
            properties["authorId"] = author_id

        description = f"Added {audience.value} note to {self.label}"
        note = QuestNote.new(self._manager)
        with self._manager.transaction(description):
            note.create(properties, description)
            self._attach_note(note.id, audience)
        return note
