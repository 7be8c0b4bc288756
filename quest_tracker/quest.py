"""Quest view: typed, validated accessors over the quest manager."""

from __future__ import annotations

from typing import Any

from quest_tracker.entity import EntityView
from quest_tracker.models import (
    EntityKind,
    NoteAudience,
    QuestCategory,
    QuestPriority,
    QuestRecord,
    QuestStatus,
    UpdateResult,
)
from quest_tracker.objective import Objective


class Quest(EntityView):
    """A quest in the log.

    Every property issues a fresh read and every setter a fresh write;
    :meth:`update_properties` batches several fields into one atomic write.
    """

    kind = EntityKind.QUEST

    def _get(self, field: str) -> Any:
        return self._manager.get_quest_field(self.id, field)

    def _set(self, field: str, value: Any) -> bool:
        return self._manager.update_quest_field(self.id, field, value)

    # ------------------------------------------------------------------
    # Text fields
    # ------------------------------------------------------------------

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
    def quest_giver(self) -> str:
        return self._get("questGiver") or ""

    def set_quest_giver(self, quest_giver: str) -> bool:
        return self._set("questGiver", quest_giver)

    @property
    def location(self) -> str:
        return self._get("location") or ""

    def set_location(self, location: str) -> bool:
        return self._set("location", location)

    @property
    def rewards(self) -> str:
        return self._get("rewards") or ""

    def set_rewards(self, rewards: str) -> bool:
        return self._set("rewards", rewards)

    # ------------------------------------------------------------------
    # Enumerated fields
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._get("status") or QuestStatus.NOT_STARTED.value

    def set_status(self, status: QuestStatus | str) -> bool:
        """Validate and write the status, stamping ``modifiedTimestamp`` with it."""
        result = self._manager.update_quest_properties(
            self.id, {"status": status}, "Update quest status"
        )
        return result.committed

    @property
    def category(self) -> str:
        return self._get("category") or QuestCategory.MAIN.value

    def set_category(self, category: QuestCategory | str) -> bool:
        return self._set("category", category)

    @property
    def priority(self) -> str:
        return self._get("priority") or QuestPriority.MEDIUM.value

    def set_priority(self, priority: QuestPriority | str) -> bool:
        return self._set("priority", priority)

    # ------------------------------------------------------------------
    # Flags and provenance
    # ------------------------------------------------------------------

    @property
    def rewards_claimed(self) -> bool:
        return bool(self._get("rewardsClaimed"))

    def set_rewards_claimed(self, claimed: bool) -> bool:
        return self._set("rewardsClaimed", claimed)

    @property
    def visible_to_players(self) -> bool:
        """Stored flag, or by role when unset: hidden for operators only."""
        visible = self._get("visibleToPlayers")
        if visible is None:
            return not self._manager.identity.is_operator
        return bool(visible)

    def set_visible_to_players(self, visible: bool) -> bool:
        return self._set("visibleToPlayers", visible)

    @property
    def created_by(self) -> str:
        return self._get("createdBy") or ""

    @property
    def created_timestamp(self) -> str:
        return self._get("createdTimestamp") or ""

    @property
    def modified_timestamp(self) -> str:
        return self._get("modifiedTimestamp") or ""

    # ------------------------------------------------------------------
    # Objectives
    # ------------------------------------------------------------------

    @property
    def objective_ids(self) -> list[str]:
        return self._get("objectiveIds") or []

    def get_objectives(self) -> list[Objective]:
        """Objectives sorted by order, lowest first."""
        objectives = [Objective(self._manager, oid) for oid in self.objective_ids]
        return sorted(objectives, key=lambda objective: objective.order)

    def get_max_objective_order(self) -> int:
        return self._manager.get_max_objective_order(self.id)

    def add_objective(self, description: str, title: str = "") -> Objective:
        objective = Objective.new(self._manager)
        with self._manager.transaction("Added objective to quest"):
            objective.create(
                {"title": title, "description": description, "questId": self.id},
                "Added objective to quest",
            )
            self._manager.add_objective_to_quest(self.id, objective.id)
        return objective

    def remove_objective(self, objective_id: str) -> bool:
        return self._manager.remove_objective_from_quest(self.id, objective_id)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def _attach_note(self, note_id: str, audience: NoteAudience) -> bool:
        return self._manager.add_note_to_quest(self.id, note_id, audience)

    def _detach_note(self, note_id: str) -> bool:
        return self._manager.remove_note_from_quest(self.id, note_id)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def create(
        self, properties: dict[str, Any], change_description: str = "Created new quest"
    ) -> UpdateResult:
        """Write creation defaults overridden by *properties*."""
        return self._manager.initialize_quest(self.id, properties, change_description)

    def update_properties(
        self,
        properties: dict[str, Any],
        change_description: str = "Update quest properties",
    ) -> UpdateResult:
        return self._manager.update_quest_properties(
            self.id, properties, change_description
        )

    def snapshot(self) -> QuestRecord:
        return QuestRecord(
            id=self.id,
            title=self.title,
            description=self.description,
            quest_giver=self.quest_giver,
            location=self.location,
            rewards=self.rewards,
            status=self.status,
            category=self.category,
            priority=self.priority,
            rewards_claimed=self.rewards_claimed,
            visible_to_players=self.visible_to_players,
            created_by=self.created_by,
            created_timestamp=self.created_timestamp,
            modified_timestamp=self.modified_timestamp,
            objective_ids=self.objective_ids,
            player_note_ids=self._get("playerNoteIds") or [],
            director_note_ids=self._get("directorNoteIds") or [],
        )
