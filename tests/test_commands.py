"""Tests for the questsetvisible operator command."""

from __future__ import annotations

import pytest

from quest_tracker import commands
from quest_tracker.manager import QuestManager
from quest_tracker.quest import Quest


@pytest.fixture()
def quest(manager: QuestManager) -> Quest:
    return manager.create_quest("Dragon Hunt")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParseVisibilityArgs:
    @pytest.mark.parametrize(
        "args, expected",
        [
            ("Dragon Hunt|1", ("Dragon Hunt", True)),
            ("Dragon Hunt|0", ("Dragon Hunt", False)),
            ("Dragon Hunt|TRUE", ("Dragon Hunt", True)),
            ("Dragon Hunt| false ", ("Dragon Hunt", False)),
            ("Dragon Hunt", ("Dragon Hunt", True)),
            ("Dragon Hunt|", ("Dragon Hunt", True)),
        ],
    )
    def test_valid(self, args: str, expected: tuple[str, bool]) -> None:
        assert commands.parse_visibility_args(args) == expected

    @pytest.mark.parametrize("args", [None, "", "   ", "|1", "Dragon Hunt|maybe"])
    def test_malformed(self, args: str | None) -> None:
        assert commands.parse_visibility_args(args) is None


# ---------------------------------------------------------------------------
# Command behaviour
# ---------------------------------------------------------------------------


class TestSetQuestVisible:
    def test_by_title(self, manager: QuestManager, quest: Quest) -> None:
        assert commands.set_quest_visible(manager, "Dragon Hunt|1") is True
        assert quest.visible_to_players is True

    def test_by_guid(self, manager: QuestManager, quest: Quest) -> None:
        quest.set_visible_to_players(True)
        assert commands.set_quest_visible(manager, f"{quest.id}|0") is True
        assert quest.visible_to_players is False

    def test_unchanged_visibility_writes_nothing(
        self, manager: QuestManager, quest: Quest
    ) -> None:
        quest.set_visible_to_players(True)
        size = len(manager.store.change_log)
        assert commands.set_quest_visible(manager, "Dragon Hunt|true") is False
        assert len(manager.store.change_log) == size

    def test_change_is_logged(self, manager: QuestManager, quest: Quest) -> None:
        commands.set_quest_visible(manager, "Dragon Hunt")
        assert manager.store.change_log[-1].description == "Set quest visibility"

    def test_malformed_flag_does_nothing(self, manager: QuestManager, quest: Quest) -> None:
        assert commands.set_quest_visible(manager, "Dragon Hunt|yes") is False
        assert manager.get_quest_field(quest.id, "visibleToPlayers") is None

    def test_unknown_quest(self, manager: QuestManager) -> None:
        assert commands.set_quest_visible(manager, "Nobody's Quest|1") is False
        assert (
            commands.set_quest_visible(manager, "00000000-0000-0000-0000-000000000000|1")
            is False
        )

    def test_non_operator_refused(
        self, manager: QuestManager, player_manager: QuestManager, quest: Quest
    ) -> None:
        assert commands.set_quest_visible(player_manager, f"{quest.id}|1") is False
        assert manager.get_quest_field(quest.id, "visibleToPlayers") is None


class TestDispatch:
    def test_routes_command(self, manager: QuestManager, quest: Quest) -> None:
        assert commands.dispatch(manager, "questsetvisible Dragon Hunt|1") is True
        assert quest.visible_to_players is True

    def test_command_name_is_case_insensitive(
        self, manager: QuestManager, quest: Quest
    ) -> None:
        assert commands.dispatch(manager, "QuestSetVisible Dragon Hunt") is True

    def test_unknown_command(self, manager: QuestManager) -> None:
        assert commands.dispatch(manager, "questdelete Dragon Hunt") is False
