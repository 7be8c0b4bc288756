"""Seed a quest log with a small, realistic campaign.

Writes through the quest manager, so every quest, objective and note lands
in the configured store exactly as the MCP server would write it.

Usage:
    python scripts/seed_quests.py [--path quest_log.json] [--backend json]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quest_tracker.config import Settings  # noqa: E402
from quest_tracker.manager import QuestManager  # noqa: E402

logger = logging.getLogger("seed_quests")

# Each entry: (title, properties, objectives, player notes, director notes)
QUESTS: list[tuple[str, dict, list[str], list[str], list[str]]] = [
    (
        "The Sunken Bell",
        {
            "category": "main",
            "priority": "high",
            "status": "active",
            "questGiver": "Abbess Marla",
            "location": "Greywater Abbey",
            "rewards": "300 gold, the Abbey's favour",
            "visibleToPlayers": True,
        },
        ["Find the bell tower key", "Dive to the flooded crypt", "Ring the bell at dawn"],
        ["The abbess mentioned tides turn at midnight."],
        ["The key is hidden inside the reliquary."],
    ),
    (
        "Rats in the Cellar",
        {
            "category": "tutorial",
            "priority": "low",
            "questGiver": "Innkeeper Bram",
            "location": "The Crooked Lantern",
            "rewards": "Free lodging for a week",
            "visibleToPlayers": True,
        },
        ["Clear the cellar"],
        [],
        [],
    ),
    (
        "Whispers of the Guild",
        {
            "category": "faction",
            "priority": "medium",
            "status": "not_started",
            "location": "Port Varn",
        },
        ["Earn a guild token", "Meet the Quiet Hand"],
        [],
        ["Only reveal once the party reaches Port Varn."],
    ),
]


def seed(manager: QuestManager) -> int:
    created = 0
    for title, properties, objectives, player_notes, director_notes in QUESTS:
        if manager.get_quest_by_title(title) is not None:
            logger.info("Skipping '%s': already present", title)
            continue

        with manager.transaction(f"Seeded quest '{title}'"):
            quest = manager.create_quest(title, properties=properties)
            for description in objectives:
                quest.add_objective(description)
            for content in player_notes:
                quest.add_player_note(content)
            for content in director_notes:
                quest.add_director_note(content)
        logger.info("Seeded '%s' (%s)", title, quest.id)
        created += 1
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the quest log")
    parser.add_argument("--path", type=Path, help="JSON quest log path")
    parser.add_argument("--backend", choices=["json", "redis"], help="Store backend")
    args = parser.parse_args()

    overrides: dict = {"actor_id": "seed-script", "is_operator": True}
    if args.path:
        overrides["storage_path"] = args.path
    if args.backend:
        overrides["storage_backend"] = args.backend
    settings = Settings(**overrides)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    manager = QuestManager.from_settings(settings)
    created = seed(manager)
    print(f"Seeded {created} quest(s) into the {manager.store.backend} store.")


if __name__ == "__main__":
    main()
