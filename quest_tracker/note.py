"""Manager-addressed note view."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from quest_tracker.models import Note, UpdateResult

if TYPE_CHECKING:
    from quest_tracker.manager import QuestManager


class QuestNote:
    """A note attached to a quest or objective, read lazily through the manager.

    Exposes the same read surface as :class:`~quest_tracker.models.Note`.
    Author and creation time have no setters; they are fixed once created.
    """

    def __init__(self, manager: QuestManager, note_id: str) -> None:
        self._manager = manager
        self.id = note_id

    @classmethod
    def new(cls, manager: QuestManager) -> QuestNote:
        """Allocate an id; nothing is stored until :meth:`create`."""
        return cls(manager, manager.identity.new_id())

    def __eq__(self, other: object) -> bool:
        return isinstance(other, QuestNote) and other.id == self.id

    def __hash__(self) -> int:
        return hash(("note", self.id))

    def __repr__(self) -> str:
        return f"QuestNote(id={self.id!r})"

    @property
    def content(self) -> str:
        return self._manager.get_note_field(self.id, "content") or ""

    @property
    def author_id(self) -> str:
        return self._manager.get_note_field(self.id, "authorId") or ""

    @property
    def created_at(self) -> str:
        return self._manager.get_note_field(self.id, "createdAt") or ""

    @property
    def visible_to_players(self) -> bool:
        return bool(self._manager.get_note_field(self.id, "visibleToPlayers"))

    def set_content(self, content: str) -> bool:
        return self._manager.update_note_field(self.id, "content", content)

    def set_visible_to_players(self, visible: bool) -> bool:
        return self._manager.update_note_field(self.id, "visibleToPlayers", visible)

    def create(
        self, properties: dict[str, Any], change_description: str = "Created note"
    ) -> UpdateResult:
        return self._manager.initialize_note(self.id, properties, change_description)

    def update_properties(
        self,
        properties: dict[str, Any],
        change_description: str = "Update note properties",
    ) -> UpdateResult:
        return self._manager.update_note_properties(
            self.id, properties, change_description
        )

    def to_record(self) -> Note | None:
        return self._manager.get_note(self.id)
