"""Operator commands.

``questsetvisible <quest>|<flag>`` shows or hides a quest for players.
``<quest>`` is a quest GUID or its exact title; ``<flag>`` is one of
``1``, ``0``, ``true`` or ``false`` and defaults to ``true``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from quest_tracker.manager import QuestManager

logger = logging.getLogger(__name__)

_FLAGS = {"1": True, "true": True, "0": False, "false": False}


def parse_visibility_args(args: str | None) -> tuple[str, bool] | None:
    """Split ``identifier|flag``. Returns None for malformed input."""
    if not args:
        return None
    identifier, _, flag = args.partition("|")
    identifier = identifier.strip()
    if not identifier:
        return None

    flag = flag.strip().lower()
    if not flag:
        return identifier, True
    if flag not in _FLAGS:
        return None
    return identifier, _FLAGS[flag]


def set_quest_visible(manager: QuestManager, args: str | None) -> bool:
    """Apply ``questsetvisible``. Returns True when the visibility changed."""
    if not manager.identity.is_operator:
        logger.info("questsetvisible refused: caller is not an operator")
        return False

    parsed = parse_visibility_args(args)
    if parsed is None:
        logger.info("questsetvisible ignored malformed arguments %r", args)
        return False

    identifier, visible = parsed
    quest = manager.resolve_quest(identifier)
    if quest is None:
        logger.info("questsetvisible found no quest for %r", identifier)
        return False

    def _apply() -> bool:
        if quest.visible_to_players == visible:
            return False
        return quest.set_visible_to_players(visible)

    changed = manager.execute_update_fn(_apply, "Set quest visibility")
    if changed:
        logger.info("Quest %s visible_to_players=%s", quest.id, visible)
    return changed


COMMANDS: dict[str, Callable[[QuestManager, str | None], bool]] = {
    "questsetvisible": set_quest_visible,
}


def dispatch(manager: QuestManager, command_line: str) -> bool:
    """Route ``"<command> <args>"`` to its handler."""
    name, _, args = command_line.strip().partition(" ")
    handler = COMMANDS.get(name.lower())
    if handler is None:
        logger.info("Unknown command %r", name)
        return False
    return handler(manager, args)
