"""Central manager for every quest, objective and note operation.

The manager is the only component that writes to the document store.
Quest, Objective and QuestNote objects are thin views that route each
read and write through it. Enumerated fields are validated here: a bad
value on a single-field write is dropped, a bad key in a batch is stripped
and reported in the returned :class:`UpdateResult` while the rest commits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from enum import Enum
from typing import Any, TypeVar

from quest_tracker.config import Settings
from quest_tracker.identity import IdentityProvider, is_guid
from quest_tracker.metrics import ENTITY_WRITES, KNOWN_QUESTS, REJECTED_FIELDS
from quest_tracker.models import (
    NOTE_LIST_FIELDS,
    EntityKind,
    Note,
    NoteAudience,
    QuestCategory,
    QuestPriority,
    QuestRecord,
    QuestStatus,
    UpdateResult,
    coerce_enum,
)
from quest_tracker.note import QuestNote
from quest_tracker.objective import Objective
from quest_tracker.quest import Quest
from quest_tracker.store import DocumentStore, JsonDocumentStore, MemoryDocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENUM_FIELDS: dict[EntityKind, dict[str, type[Enum]]] = {
    EntityKind.QUEST: {
        "status": QuestStatus,
        "category": QuestCategory,
        "priority": QuestPriority,
    },
    EntityKind.OBJECTIVE: {"status": QuestStatus},
    EntityKind.NOTE: {},
}

# Fields that may be set on creation but never overwritten afterwards.
IMMUTABLE_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.QUEST: ("createdBy", "createdTimestamp"),
    EntityKind.OBJECTIVE: ("createdTimestamp",),
    EntityKind.NOTE: ("authorId", "createdAt"),
}

_LABELS = {
    EntityKind.QUEST: "quest",
    EntityKind.OBJECTIVE: "objective",
    EntityKind.NOTE: "note",
}


class QuestManager:
    """Mediates all quest log reads and writes against a document store."""

    def __init__(self, store: DocumentStore, identity: IdentityProvider) -> None:
        self._store = store
        self._identity = identity

    @classmethod
    def from_settings(cls, settings: Settings) -> QuestManager:
        """Build the identity provider and the configured store backend."""
        identity = IdentityProvider(
            actor_id=settings.actor_id, is_operator=settings.is_operator
        )
        backend = settings.storage_backend.lower()
        common = {
            "change_log_limit": settings.change_log_limit,
            "clock": identity.now_utc_iso8601,
        }
        if backend == "memory":
            store: DocumentStore = MemoryDocumentStore(
                campaign_name=settings.campaign_name, **common
            )
        elif backend == "json":
            store = JsonDocumentStore(
                settings.storage_path, campaign_name=settings.campaign_name, **common
            )
        elif backend == "redis":
            from quest_tracker.redis_store import RedisDocumentStore

            store = RedisDocumentStore.from_url(
                settings.redis_url, namespace=settings.redis_namespace, **common
            )
            store.initialize(settings.campaign_name)
        else:
            raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")

        logger.info("Quest manager using %s store", store.backend)
        return cls(store, identity)

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def identity(self) -> IdentityProvider:
        return self._identity

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def transaction(
        self, change_description: str = "Update quest log"
    ) -> AbstractContextManager[None]:
        return self._store.transaction(change_description)

    def execute_update_fn(
        self, fn: Callable[[], T], change_description: str = "Update quest log"
    ) -> T:
        """Run *fn* inside one outer transaction; its writes commit together."""
        with self._store.transaction(change_description):
            return fn()

    # ------------------------------------------------------------------
    # Quest lookup
    # ------------------------------------------------------------------

    def get_quest(self, quest_id: str) -> Quest | None:
        """Return a view for *quest_id*. Stored data is not checked."""
        if not quest_id:
            return None
        return Quest(self, quest_id)

    def quest_exists(self, quest_id: str) -> bool:
        return bool(quest_id) and self._store.exists(EntityKind.QUEST, quest_id)

    def get_quest_by_title(self, title: str) -> Quest | None:
        """Exact, case-sensitive title match.

        Duplicate titles resolve to the quest with the smallest id.
        """
        for quest_id in sorted(self._store.list_known_ids(EntityKind.QUEST)):
            if self.get_quest_field(quest_id, "title") == title:
                return Quest(self, quest_id)
        return None

    def resolve_quest(self, identifier: str) -> Quest | None:
        """Find a quest by GUID when *identifier* looks like one, else by title."""
        identifier = identifier.strip()
        if not identifier:
            return None
        if is_guid(identifier):
            return Quest(self, identifier) if self.quest_exists(identifier) else None
        return self.get_quest_by_title(identifier)

    def is_visible_to_current_user(self, quest: Quest) -> bool:
        if self._identity.is_operator:
            return True
        return quest.visible_to_players or (
            quest.created_by == self._identity.current_actor_id()
        )

    def get_all_quests(self) -> list[Quest]:
        """Every quest the current user may see."""
        quest_ids = self._store.list_known_ids(EntityKind.QUEST)
        KNOWN_QUESTS.set(len(quest_ids))
        quests = [Quest(self, quest_id) for quest_id in quest_ids]
        return [quest for quest in quests if self.is_visible_to_current_user(quest)]

    def get_quests_by_status(self, status: QuestStatus | str) -> list[Quest]:
        wanted = coerce_enum(QuestStatus, status)
        return [quest for quest in self.get_all_quests() if quest.status == wanted]

    def get_quests_by_category(self, category: QuestCategory | str) -> list[Quest]:
        wanted = coerce_enum(QuestCategory, category)
        return [quest for quest in self.get_all_quests() if quest.category == wanted]

    # ------------------------------------------------------------------
    # Quest lifecycle
    # ------------------------------------------------------------------

    def quest_defaults(self) -> dict[str, Any]:
        now = self._identity.now_utc_iso8601()
        return {
            "title": "",
            "description": "",
            "category": QuestCategory.MAIN.value,
            "status": QuestStatus.NOT_STARTED.value,
            "priority": QuestPriority.MEDIUM.value,
            "questGiver": "",
            "location": "",
            "rewards": "",
            "rewardsClaimed": False,
            "createdBy": self._identity.current_actor_id(),
            "createdTimestamp": now,
            "modifiedTimestamp": now,
            "objectiveIds": [],
            "playerNoteIds": [],
            "directorNoteIds": [],
        }

    def create_quest(
        self,
        title: str = "",
        created_by: str | None = None,
        properties: dict[str, Any] | None = None,
        change_description: str = "Created new quest",
    ) -> Quest:
        quest = Quest.new(self)
        initial: dict[str, Any] = {"title": title}
        if created_by is not None:
            initial["createdBy"] = created_by
        initial.update(properties or {})
        quest.create(initial, change_description)
        logger.info("Created quest %s '%s'", quest.id, quest.title)
        return quest

    def create_draft_quest(
        self, title: str = "", created_by: str | None = None
    ) -> QuestRecord:
        """Build an unsaved quest; nothing is written until save_draft_quest."""
        fields = self.quest_defaults()
        fields["title"] = title
        if created_by is not None:
            fields["createdBy"] = created_by
        return QuestRecord.model_validate({"id": self._identity.new_id(), **fields})

    def save_draft_quest(self, draft: QuestRecord) -> Quest:
        self.initialize_quest(draft.id, draft.to_fields(), "Saved draft quest")
        return Quest(self, draft.id)

    def delete_quest(self, quest_id: str) -> bool:
        """Remove a quest together with its objectives and their notes."""
        if not self.quest_exists(quest_id):
            return False

        with self._store.transaction("Deleted quest"):
            for objective_id in self.get_quest_field(quest_id, "objectiveIds") or []:
                self._delete_objective_data(objective_id)
            for list_field in NOTE_LIST_FIELDS:
                for note_id in self.get_quest_field(quest_id, list_field) or []:
                    self._store.delete_entity(EntityKind.NOTE, note_id)
            self._store.delete_entity(EntityKind.QUEST, quest_id)

        logger.info("Deleted quest %s", quest_id)
        return True

    def _delete_objective_data(self, objective_id: str) -> None:
        for list_field in NOTE_LIST_FIELDS:
            for note_id in self.get_objective_field(objective_id, list_field) or []:
                self._store.delete_entity(EntityKind.NOTE, note_id)
        self._store.delete_entity(EntityKind.OBJECTIVE, objective_id)

    # ------------------------------------------------------------------
    # Quest fields
    # ------------------------------------------------------------------

    def get_quest_field(self, quest_id: str, field: str) -> Any:
        return self._store.read_field(EntityKind.QUEST, quest_id, field)

    def update_quest_field(self, quest_id: str, field: str, value: Any) -> bool:
        return self._update_field(EntityKind.QUEST, quest_id, field, value)

    def update_quest_properties(
        self,
        quest_id: str,
        properties: dict[str, Any],
        change_description: str = "Update quest properties",
    ) -> UpdateResult:
        return self._update_properties(
            EntityKind.QUEST, quest_id, properties, change_description
        )

    def initialize_quest(
        self,
        quest_id: str,
        properties: dict[str, Any],
        change_description: str = "Created new quest",
    ) -> UpdateResult:
        return self._initialize(
            EntityKind.QUEST, quest_id, self.quest_defaults(), properties, change_description
        )

    # ------------------------------------------------------------------
    # Objectives
    # ------------------------------------------------------------------

    def objective_defaults(self) -> dict[str, Any]:
        now = self._identity.now_utc_iso8601()
        return {
            "title": "",
            "description": "",
            "status": QuestStatus.NOT_STARTED.value,
            "order": 1,
            "createdTimestamp": now,
            "modifiedTimestamp": now,
            "playerNoteIds": [],
            "directorNoteIds": [],
        }

    def get_objective(self, objective_id: str) -> Objective | None:
        if not objective_id:
            return None
        return Objective(self, objective_id)

    def get_objective_field(self, objective_id: str, field: str) -> Any:
        return self._store.read_field(EntityKind.OBJECTIVE, objective_id, field)

    def update_objective_field(self, objective_id: str, field: str, value: Any) -> bool:
        return self._update_field(EntityKind.OBJECTIVE, objective_id, field, value)

    def update_objective_properties(
        self,
        objective_id: str,
        properties: dict[str, Any],
        change_description: str = "Update objective properties",
    ) -> UpdateResult:
        return self._update_properties(
            EntityKind.OBJECTIVE, objective_id, properties, change_description
        )

    def initialize_objective(
        self,
        objective_id: str,
        properties: dict[str, Any],
        change_description: str = "Created objective",
    ) -> UpdateResult:
        return self._initialize(
            EntityKind.OBJECTIVE,
            objective_id,
            self.objective_defaults(),
            properties,
            change_description,
        )

    def create_objective(
        self,
        properties: dict[str, Any] | None = None,
        change_description: str = "Created objective",
    ) -> Objective:
        """Store a new, unattached objective; see :meth:`add_objective_to_quest`."""
        objective = Objective.new(self)
        objective.create(properties or {}, change_description)
        return objective

    def get_max_objective_order(self, quest_id: str) -> int:
        orders = [
            self.get_objective_field(objective_id, "order") or 1
            for objective_id in self.get_quest_field(quest_id, "objectiveIds") or []
        ]
        return max(orders, default=0)

    def add_objective_to_quest(self, quest_id: str, objective_id: str) -> int:
        """Append an objective and give it the next order; returns that order."""
        with self._store.transaction("Added objective to quest"):
            objective_ids = self.get_quest_field(quest_id, "objectiveIds") or []
            if objective_id in objective_ids:
                return self.get_objective_field(objective_id, "order") or 1

            order = self.get_max_objective_order(quest_id) + 1
            self._store.write_field(
                EntityKind.QUEST, quest_id, "objectiveIds", [*objective_ids, objective_id]
            )
            self._store.write_fields(
                EntityKind.OBJECTIVE, objective_id, {"questId": quest_id, "order": order}
            )
        ENTITY_WRITES.labels(kind=EntityKind.QUEST.value, operation="list").inc()
        return order

    def remove_objective_from_quest(self, quest_id: str, objective_id: str) -> bool:
        """Drop an objective from the quest's list. Sibling orders are kept."""
        return self._remove_from_lists(
            EntityKind.QUEST,
            quest_id,
            ("objectiveIds",),
            objective_id,
            "Removed objective from quest",
        )

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def note_defaults(self) -> dict[str, Any]:
        return {
            "authorId": self._identity.current_actor_id(),
            "content": "",
            "createdAt": self._identity.now_utc_iso8601(),
            "visibleToPlayers": False,
        }

    def get_note(self, note_id: str) -> Note | None:
        """Return a standalone Note built from the stored fields."""
        if not note_id:
            return None
        fields = self._store.read_entity(EntityKind.NOTE, note_id)
        if fields is None:
            return None
        return Note.model_validate({**fields, "id": note_id})

    def get_note_view(self, note_id: str) -> QuestNote | None:
        if not note_id:
            return None
        return QuestNote(self, note_id)

    def get_note_field(self, note_id: str, field: str) -> Any:
        return self._store.read_field(EntityKind.NOTE, note_id, field)

    def update_note_field(self, note_id: str, field: str, value: Any) -> bool:
        return self._update_field(EntityKind.NOTE, note_id, field, value)

    def update_note_properties(
        self,
        note_id: str,
        properties: dict[str, Any],
        change_description: str = "Update note properties",
    ) -> UpdateResult:
        return self._update_properties(
            EntityKind.NOTE, note_id, properties, change_description
        )

    def initialize_note(
        self,
        note_id: str,
        properties: dict[str, Any],
        change_description: str = "Created note",
    ) -> UpdateResult:
        return self._initialize(
            EntityKind.NOTE, note_id, self.note_defaults(), properties, change_description
        )

    def create_note(
        self,
        properties: dict[str, Any] | None = None,
        change_description: str = "Created note",
    ) -> QuestNote:
        note = QuestNote.new(self)
        note.create(properties or {}, change_description)
        return note

    def add_note_to_quest(
        self, quest_id: str, note_id: str, audience: NoteAudience | str
    ) -> bool:
        return self._add_note(EntityKind.QUEST, quest_id, note_id, audience)

    def remove_note_from_quest(self, quest_id: str, note_id: str) -> bool:
        return self._remove_from_lists(
            EntityKind.QUEST, quest_id, NOTE_LIST_FIELDS, note_id, "Removed note from quest"
        )

    def add_note_to_objective(
        self, objective_id: str, note_id: str, audience: NoteAudience | str
    ) -> bool:
        return self._add_note(EntityKind.OBJECTIVE, objective_id, note_id, audience)

    def remove_note_from_objective(self, objective_id: str, note_id: str) -> bool:
        return self._remove_from_lists(
            EntityKind.OBJECTIVE,
            objective_id,
            NOTE_LIST_FIELDS,
            note_id,
            "Removed note from objective",
        )

    def get_notes(
        self, kind: EntityKind, owner_id: str, audience: NoteAudience | str
    ) -> list[QuestNote]:
        """Notes in one audience list, newest first."""
        audience = NoteAudience(audience)
        note_ids = self._store.read_field(kind, owner_id, audience.list_field) or []
        notes = [QuestNote(self, note_id) for note_id in note_ids]
        return sorted(notes, key=lambda note: note.created_at, reverse=True)

    def _add_note(
        self, kind: EntityKind, owner_id: str, note_id: str, audience: NoteAudience | str
    ) -> bool:
        list_value = coerce_enum(NoteAudience, audience)
        if list_value is None:
            logger.debug("Ignored note %s with unknown audience %r", note_id, audience)
            return False

        list_field = NoteAudience(list_value).list_field
        with self._store.transaction(f"Added note to {_LABELS[kind]}"):
            note_ids = self._store.read_field(kind, owner_id, list_field) or []
            if note_id not in note_ids:
                self._store.write_field(kind, owner_id, list_field, [*note_ids, note_id])
        ENTITY_WRITES.labels(kind=kind.value, operation="list").inc()
        return True

    # ------------------------------------------------------------------
    # Shared write path
    # ------------------------------------------------------------------

    def _validate(
        self,
        kind: EntityKind,
        entity_id: str,
        properties: dict[str, Any],
        creating: bool,
    ) -> tuple[dict[str, Any], frozenset[str]]:
        enum_fields = ENUM_FIELDS[kind]
        clean: dict[str, Any] = {}
        rejected: set[str] = set()

        for field, value in properties.items():
            if field == "id":
                rejected.add(field)
            elif field in enum_fields:
                coerced = coerce_enum(enum_fields[field], value)
                if coerced is None:
                    rejected.add(field)
                else:
                    clean[field] = coerced
            elif (
                not creating
                and field in IMMUTABLE_FIELDS[kind]
                and self._store.read_field(kind, entity_id, field) is not None
            ):
                rejected.add(field)
            else:
                clean[field] = value

        for field in rejected:
            REJECTED_FIELDS.labels(kind=kind.value, field=field).inc()
            logger.debug(
                "Dropped %s field %r on %s: %r",
                _LABELS[kind],
                field,
                entity_id,
                properties[field],
            )
        return clean, frozenset(rejected)

    def _update_field(
        self, kind: EntityKind, entity_id: str, field: str, value: Any
    ) -> bool:
        clean, rejected = self._validate(kind, entity_id, {field: value}, creating=False)
        if rejected:
            return False
        self._store.write_field(
            kind, entity_id, field, clean[field], f"Update {_LABELS[kind]} {field}"
        )
        ENTITY_WRITES.labels(kind=kind.value, operation="field").inc()
        return True

    def _update_properties(
        self,
        kind: EntityKind,
        entity_id: str,
        properties: dict[str, Any],
        change_description: str,
    ) -> UpdateResult:
        clean, rejected = self._validate(kind, entity_id, properties, creating=False)
        if not clean:
            return UpdateResult(rejected=rejected)

        if kind is not EntityKind.NOTE:
            clean["modifiedTimestamp"] = self._identity.now_utc_iso8601()
        self._store.write_fields(kind, entity_id, clean, change_description)
        ENTITY_WRITES.labels(kind=kind.value, operation="batch").inc()
        return UpdateResult(applied=tuple(clean), rejected=rejected)

    def _initialize(
        self,
        kind: EntityKind,
        entity_id: str,
        defaults: dict[str, Any],
        properties: dict[str, Any],
        change_description: str,
    ) -> UpdateResult:
        clean, rejected = self._validate(
            kind, entity_id, {**defaults, **properties}, creating=True
        )
        # A rejected override falls back to its default.
        for field in rejected:
            if field in defaults:
                clean[field] = defaults[field]
        self._store.write_fields(kind, entity_id, clean, change_description)
        ENTITY_WRITES.labels(kind=kind.value, operation="create").inc()
        return UpdateResult(applied=tuple(clean), rejected=rejected)

    def _remove_from_lists(
        self,
        kind: EntityKind,
        owner_id: str,
        list_fields: tuple[str, ...],
        item_id: str,
        change_description: str,
    ) -> bool:
        removed = False
        with self._store.transaction(change_description):
            for list_field in list_fields:
                item_ids = self._store.read_field(kind, owner_id, list_field) or []
                if item_id in item_ids:
                    item_ids.remove(item_id)
                    self._store.write_field(kind, owner_id, list_field, item_ids)
                    removed = True
        if removed:
            ENTITY_WRITES.labels(kind=kind.value, operation="list").inc()
        return removed
