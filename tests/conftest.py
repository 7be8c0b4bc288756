"""Shared fixtures: a quest manager over an in-memory store with a stepping clock."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from quest_tracker.identity import IdentityProvider
from quest_tracker.manager import QuestManager
from quest_tracker.store import MemoryDocumentStore

DIRECTOR_ID = "director-1"
PLAYER_ID = "player-1"


class StepClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_manager(
    store: MemoryDocumentStore | None = None,
    is_operator: bool = True,
    actor_id: str = DIRECTOR_ID,
) -> QuestManager:
    identity = IdentityProvider(
        actor_id=actor_id, is_operator=is_operator, clock=StepClock()
    )
    if store is None:
        store = MemoryDocumentStore(clock=identity.now_utc_iso8601)
    return QuestManager(store, identity)


@pytest.fixture()
def manager() -> QuestManager:
    """Operator-side manager over a fresh in-memory store."""
    return make_manager()


@pytest.fixture()
def player_manager(manager: QuestManager) -> QuestManager:
    """Non-operator manager sharing the operator's store."""
    return make_manager(store=manager.store, is_operator=False, actor_id=PLAYER_ID)
