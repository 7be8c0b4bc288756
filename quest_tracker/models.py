"""Pydantic models and vocabularies for the quest log."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EntityKind(str, Enum):
    """Document store collections."""

    QUEST = "quests"
    OBJECTIVE = "objectives"
    NOTE = "notes"


class QuestStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    ON_HOLD = "on_hold"


class QuestCategory(str, Enum):
    MAIN = "main"
    SIDE = "side"
    PERSONAL = "personal"
    FACTION = "faction"
    TUTORIAL = "tutorial"


class QuestPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NoteAudience(str, Enum):
    """Which of the two note lists a note belongs to."""

    PLAYER = "player"
    DIRECTOR = "director"

    @property
    def list_field(self) -> str:
        return f"{self.value}NoteIds"


NOTE_LIST_FIELDS = tuple(audience.list_field for audience in NoteAudience)


def coerce_enum(vocabulary: type[Enum], value: Any) -> str | None:
    """Return the stored string for *value*, or None if it is not in *vocabulary*."""
    if isinstance(value, vocabulary):
        return value.value
    try:
        return vocabulary(value).value
    except ValueError:
        return None


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a batch write: which keys were written, which were dropped."""

    applied: tuple[str, ...] = ()
    rejected: frozenset[str] = field(default_factory=frozenset)

    @property
    def committed(self) -> bool:
        return bool(self.applied)


class _DocumentModel(BaseModel):
    """Base for models whose aliases are the stored camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
        validate_default=True,
    )


class Note(_DocumentModel):
    """A single note, built fresh from stored fields on every read."""

    id: str = Field(frozen=True)
    author_id: str = Field(default="", frozen=True)
    content: str = ""
    created_at: str = Field(default="", frozen=True, description="ISO-8601 creation timestamp")
    visible_to_players: bool = False


class ObjectiveRecord(_DocumentModel):
    """Plain snapshot of an objective's stored fields."""

    id: str
    quest_id: str = ""
    title: str = ""
    description: str = ""
    status: QuestStatus = QuestStatus.NOT_STARTED
    order: int = 1
    created_timestamp: str = ""
    modified_timestamp: str = ""
    player_note_ids: list[str] = Field(default_factory=list)
    director_note_ids: list[str] = Field(default_factory=list)


class QuestRecord(_DocumentModel):
    """Plain snapshot of a quest; also used for unsaved draft quests."""

    id: str
    title: str = ""
    description: str = ""
    quest_giver: str = ""
    location: str = ""
    rewards: str = ""
    status: QuestStatus = QuestStatus.NOT_STARTED
    category: QuestCategory = QuestCategory.MAIN
    priority: QuestPriority = QuestPriority.MEDIUM
    rewards_claimed: bool = False
    visible_to_players: bool | None = None
    created_by: str = ""
    created_timestamp: str = ""
    modified_timestamp: str = ""
    objective_ids: list[str] = Field(default_factory=list)
    player_note_ids: list[str] = Field(default_factory=list)
    director_note_ids: list[str] = Field(default_factory=list)

    def to_fields(self) -> dict[str, Any]:
        """Stored field mapping, without the id and without unset visibility."""
        fields = self.model_dump(by_alias=True, exclude={"id"})
        if fields["visibleToPlayers"] is None:
            del fields["visibleToPlayers"]
        return fields


class ChangeRecord(_DocumentModel):
    """One committed transaction in the store's change log."""

    description: str
    timestamp: str
    entities: list[str] = Field(default_factory=list)


class DocumentMetadata(_DocumentModel):
    campaign_name: str = "Default Campaign"
    version: int = 1
    created_timestamp: str = ""
    modified_timestamp: str = ""


class QuestLogDocument(_DocumentModel):
    """Container for the whole quest log, used for JSON serialization."""

    quests: dict[str, dict[str, Any]] = Field(default_factory=dict)
    objectives: dict[str, dict[str, Any]] = Field(default_factory=dict)
    notes: dict[str, dict[str, Any]] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    change_log: list[ChangeRecord] = Field(default_factory=list)
