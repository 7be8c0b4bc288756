"""
Quest Log MCP Server

Exposes tools for creating, inspecting and updating quests, objectives and
notes via the Model Context Protocol.  Runs with SSE transport on the port
from ``QUEST_SERVER_PORT`` (8001 by default).
"""

import logging
from datetime import UTC, datetime
from typing import Any

from mcp.server.fastmcp import FastMCP

from quest_tracker import commands
from quest_tracker.config import settings
from quest_tracker.manager import QuestManager
from quest_tracker.note import QuestNote
from quest_tracker.quest import Quest

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("quest_log")

# ---------------------------------------------------------------------------
# MCP server + manager
# ---------------------------------------------------------------------------
mcp = FastMCP("quest-log", host=settings.server_host, port=settings.server_port)
_manager: QuestManager | None = None


def get_manager() -> QuestManager:
    """Build the quest manager from settings on first use."""
    global _manager
    if _manager is None:
        _manager = QuestManager.from_settings(settings)
    return _manager


def _quest_payload(quest: Quest, include_children: bool = False) -> dict[str, Any]:
    payload = quest.snapshot().model_dump(by_alias=True)
    if not include_children:
        return payload

    manager = get_manager()
    payload["objectives"] = [
        objective.snapshot().model_dump(by_alias=True)
        for objective in quest.get_objectives()
    ]
    payload["playerNotes"] = _note_payloads(quest.get_player_notes())
    if manager.identity.is_operator:
        payload["directorNotes"] = _note_payloads(quest.get_director_notes())
    return payload


def _note_payloads(notes: list[QuestNote]) -> list[dict[str, Any]]:
    records = [note.to_record() for note in notes]
    return [record.model_dump(by_alias=True) for record in records if record is not None]


def _not_found(identifier: str) -> dict:
    return {"found": False, "message": f"No quest matches '{identifier}'."}


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def create_quest(
    title: str,
    description: str = "",
    category: str = "main",
    priority: str = "medium",
    quest_giver: str = "",
    location: str = "",
    rewards: str = "",
) -> dict:
    """Create a new quest in the quest log.

    Args:
        title: Quest title shown to players and the director.
        description: Longer free-text description.
        category: One of main, side, personal, faction, tutorial.
        priority: One of high, medium, low.
        quest_giver: Who handed out the quest.
        location: Where the quest takes place.
        rewards: Description of the rewards.

    Returns:
        Dictionary with the new quest_id and any rejected fields.
    """
    manager = get_manager()
    quest = Quest.new(manager)
    result = quest.create(
        {
            "title": title,
            "description": description,
            "category": category,
            "priority": priority,
            "questGiver": quest_giver,
            "location": location,
            "rewards": rewards,
        }
    )
    logger.info("Tool create_quest invoked: id=%s", quest.id)
    return {
        "quest_id": quest.id,
        "rejected": sorted(result.rejected),
        "message": f"Quest '{quest.title}' created.",
    }


@mcp.tool()
def get_quest(identifier: str) -> dict:
    """Fetch a quest with its objectives and notes by GUID or exact title.

    Args:
        identifier: Quest GUID or exact, case-sensitive title.

    Returns:
        Dictionary with ``found`` and, when found, the quest payload.
    """
    manager = get_manager()
    quest = manager.resolve_quest(identifier)
    logger.info("Tool get_quest invoked: identifier='%s'", identifier)
    if quest is None or not manager.is_visible_to_current_user(quest):
        return _not_found(identifier)
    return {"found": True, "quest": _quest_payload(quest, include_children=True)}


@mcp.tool()
def list_quests(status: str | None = None, category: str | None = None) -> dict:
    """List the quests visible to the current user.

    Args:
        status: Optional status filter.
        category: Optional category filter.

    Returns:
        Dictionary with the matching quests and their count.
    """
    manager = get_manager()
    if status:
        quests = manager.get_quests_by_status(status)
    else:
        quests = manager.get_all_quests()
    if category:
        quests = [quest for quest in quests if quest.category == category]

    logger.info("Tool list_quests invoked: found=%d", len(quests))
    return {
        "count": len(quests),
        "quests": [_quest_payload(quest) for quest in quests],
    }


@mcp.tool()
def update_quest(quest_id: str, properties: dict[str, Any]) -> dict:
    """Update several quest fields at once.

    Invalid status, category or priority values are dropped and reported in
    ``rejected``; the other fields are still written.

    Args:
        quest_id: GUID of the quest.
        properties: Mapping of stored field names (camelCase) to new values.

    Returns:
        Dictionary with the applied and rejected field names.
    """
    manager = get_manager()
    if not manager.quest_exists(quest_id):
        return _not_found(quest_id)
    result = manager.update_quest_properties(quest_id, properties)
    logger.info(
        "Tool update_quest invoked: id=%s, rejected=%s", quest_id, sorted(result.rejected)
    )
    return {
        "found": True,
        "applied": list(result.applied),
        "rejected": sorted(result.rejected),
    }


@mcp.tool()
def add_objective(quest_id: str, description: str, title: str = "") -> dict:
    """Append an objective to a quest.

    Args:
        quest_id: GUID of the quest.
        description: What has to be done.
        title: Optional short title.

    Returns:
        Dictionary with the objective_id and its order within the quest.
    """
    manager = get_manager()
    if not manager.quest_exists(quest_id):
        return _not_found(quest_id)
    objective = manager.get_quest(quest_id).add_objective(description, title=title)
    logger.info("Tool add_objective invoked: quest=%s, id=%s", quest_id, objective.id)
    return {"found": True, "objective_id": objective.id, "order": objective.order}


@mcp.tool()
def set_objective_status(objective_id: str, status: str) -> dict:
    """Change an objective's status.

    Args:
        objective_id: GUID of the objective.
        status: One of not_started, active, completed, failed, on_hold.

    Returns:
        Dictionary telling whether the status was accepted.
    """
    objective = get_manager().get_objective(objective_id)
    updated = objective.set_status(status) if objective else False
    logger.info("Tool set_objective_status invoked: id=%s, updated=%s", objective_id, updated)
    return {"updated": updated}


@mcp.tool()
def add_note(
    quest_id: str,
    content: str,
    audience: str = "player",
    visible_to_players: bool | None = None,
) -> dict:
    """Attach a player or director note to a quest.

    Args:
        quest_id: GUID of the quest.
        content: Note text.
        audience: ``player`` or ``director``.
        visible_to_players: Override the audience's default visibility.

    Returns:
        Dictionary with the new note_id.
    """
    manager = get_manager()
    if not manager.quest_exists(quest_id):
        return _not_found(quest_id)
    quest = manager.get_quest(quest_id)
    if audience == "director":
        note = quest.add_director_note(content, visible_to_players=visible_to_players)
    elif audience == "player":
        note = quest.add_player_note(content, visible_to_players=visible_to_players)
    else:
        return {"found": True, "message": f"Unknown audience '{audience}'."}
    logger.info("Tool add_note invoked: quest=%s, id=%s", quest_id, note.id)
    return {"found": True, "note_id": note.id}


@mcp.tool()
def set_quest_visible(args: str) -> dict:
    """Show or hide a quest for players (operators only).

    Args:
        args: ``<quest guid or title>|<1|0|true|false>``; flag defaults to true.

    Returns:
        Dictionary telling whether the visibility changed.
    """
    changed = commands.set_quest_visible(get_manager(), args)
    logger.info("Tool set_quest_visible invoked: changed=%s", changed)
    return {"changed": changed}


@mcp.tool()
def delete_quest(quest_id: str) -> dict:
    """Delete a quest with all its objectives and notes.

    Args:
        quest_id: GUID of the quest.

    Returns:
        Dictionary telling whether anything was deleted.
    """
    deleted = get_manager().delete_quest(quest_id)
    logger.info("Tool delete_quest invoked: id=%s, deleted=%s", quest_id, deleted)
    return {"deleted": deleted}


@mcp.tool()
def health_check() -> dict:
    """Check whether the Quest Log server is healthy.

    Returns:
        Dictionary with server status, store backend, quest count, and timestamp.
    """
    manager = get_manager()
    logger.info("Tool health_check invoked")
    return {
        "status": "healthy",
        "server": "quest-log",
        "backend": manager.store.backend,
        "total_quests": len(manager.store.list_known_ids("quests")),
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info("Starting Quest Log MCP server on port %d ...", settings.server_port)
    mcp.run(transport="sse")
