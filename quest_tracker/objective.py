"""Objective view: one unit of progress inside a quest."""

from __future__ import annotations

from typing import Any

from quest_tracker.entity import EntityView
from quest_tracker.models import (
    EntityKind,
    NoteAudience,
    ObjectiveRecord,
    QuestStatus,
    UpdateResult,
)


class Objective(EntityView):
    """An objective, tracked independently of its quest's status.

    ``order`` is a sort key assigned by the owning quest when the objective
    is appended; gaps left by removed siblings are never closed.
    """

    kind = EntityKind.OBJECTIVE

    def _get(self, field: str) -> Any:
        return self._manager.get_objective_field(self.id, field)

    def _set(self, field: str, value: Any) -> bool:
        return self._manager.update_objective_field(self.id, field, value)

    @property
    def quest_id(self) -> str:
        return self._get("questId") or ""

    @property
    def title(self) -> str:
        return self._get("title") or ""

    def set_title(self, title: str) -> bool:
        return self._set("title", title)

    @property
    def description(self) -> str:
        return self._get("description") or ""

    def set_description(self, description: str) -> bool:
        return self._set("description", description)

    @property
    def status(self) -> str:
        return self._get("status") or QuestStatus.NOT_STARTED.value

    def set_status(self, status: QuestStatus | str) -> bool:
        """Validate and write the status, stamping ``modifiedTimestamp`` with it."""
        result = self._manager.update_objective_properties(
            self.id, {"status": status}, "Update objective status"
        )
        return result.committed

    @property
    def order(self) -> int:
        return self._get("order") or 1

    def set_order(self, order: int) -> bool:
        return self._set("order", order)

    @property
    def created_timestamp(self) -> str:
        return self._get("createdTimestamp") or ""

    @property
    def modified_timestamp(self) -> str:
        return self._get("modifiedTimestamp") or ""

    def _attach_note(self, note_id: str, audience: NoteAudience) -> bool:
        return self._manager.add_note_to_objective(self.id, note_id, audience)

    def _detach_note(self, note_id: str) -> bool:
        return self._manager.remove_note_from_objective(self.id, note_id)

    def create(
        self, properties: dict[str, Any], change_description: str = "Created objective"
    ) -> UpdateResult:
        """Write creation defaults overridden by *properties*."""
        return self._manager.initialize_objective(self.id, properties, change_description)

    def update_properties(
        self,
        properties: dict[str, Any],
        change_description: str = "Update objective properties",
    ) -> UpdateResult:
        return self._manager.update_objective_properties(
            self.id, properties, change_description
        )

    def snapshot(self) -> ObjectiveRecord:
        return ObjectiveRecord(
            id=self.id,
            quest_id=self.quest_id,
            title=self.title,
            description=self.description,
            status=self.status,
            order=self.order,
            created_timestamp=self.created_timestamp,
            modified_timestamp=self.modified_timestamp,
            player_note_ids=self._get("playerNoteIds") or [],
            director_note_ids=self._get("directorNoteIds") or [],
        )
