"""Unit tests for quest_tracker.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from quest_tracker.models import (
    NOTE_LIST_FIELDS,
    Note,
    NoteAudience,
    QuestCategory,
    QuestRecord,
    QuestStatus,
    UpdateResult,
    coerce_enum,
)


class TestCoerceEnum:
    def test_member(self) -> None:
        assert coerce_enum(QuestStatus, QuestStatus.ON_HOLD) == "on_hold"

    def test_string(self) -> None:
        assert coerce_enum(QuestCategory, "faction") == "faction"

    @pytest.mark.parametrize("value", ["Faction", "epic", "", None, 3])
    def test_unknown(self, value: object) -> None:
        assert coerce_enum(QuestCategory, value) is None


class TestNoteAudience:
    def test_list_fields(self) -> None:
        assert NoteAudience.PLAYER.list_field == "playerNoteIds"
        assert NOTE_LIST_FIELDS == ("playerNoteIds", "directorNoteIds")


class TestUpdateResult:
    def test_committed(self) -> None:
        assert UpdateResult(applied=("title",)).committed
        assert not UpdateResult(rejected=frozenset({"status"})).committed


class TestNote:
    def test_from_stored_fields(self) -> None:
        note = Note.model_validate(
            {
                "id": "n1",
                "authorId": "gm",
                "content": "Beware",
                "createdAt": "2025-01-01T00:00:00.000000Z",
                "visibleToPlayers": True,
            }
        )
        assert note.author_id == "gm"
        assert note.visible_to_players is True

    def test_author_and_creation_are_frozen(self) -> None:
        note = Note(id="n1", author_id="gm")
        note.content = "edited"
        with pytest.raises(ValidationError):
            note.author_id = "someone"
        with pytest.raises(ValidationError):
            note.created_at = "later"


class TestQuestRecord:
    def test_enum_validation(self) -> None:
        with pytest.raises(ValidationError):
            QuestRecord(id="q1", status="paused")

    def test_to_fields_uses_stored_names(self) -> None:
        fields = QuestRecord(id="q1", title="Hunt", quest_giver="Mayor").to_fields()
        assert "id" not in fields
        assert "visibleToPlayers" not in fields
        assert fields["questGiver"] == "Mayor"
        assert fields["status"] == "not_started"

    def test_to_fields_keeps_explicit_visibility(self) -> None:
        fields = QuestRecord(id="q1", visible_to_players=False).to_fields()
        assert fields["visibleToPlayers"] is False
