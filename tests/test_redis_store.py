"""Unit tests for quest_tracker.redis_store with a mocked Redis client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from quest_tracker.models import ChangeRecord
from quest_tracker.redis_store import RedisDocumentStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_store(limit: int = 200) -> tuple[RedisDocumentStore, MagicMock, MagicMock]:
    """Create a RedisDocumentStore over a mocked client and pipeline."""
    client = MagicMock()
    pipe = MagicMock()
    client.pipeline.return_value = pipe
    store = RedisDocumentStore(
        client, namespace="QT", change_log_limit=limit, clock=lambda: "T1"
    )
    return store, client, pipe


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


class TestCommit:
    def test_write_is_one_pipeline(self) -> None:
        store, client, pipe = _make_store()
        store.write_fields("quests", "q1", {"title": "A", "objectiveIds": ["o1"]}, "Edit")

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.hset.assert_any_call(
            "QT:quests:q1",
            mapping={"title": json.dumps("A"), "objectiveIds": json.dumps(["o1"])},
        )
        pipe.sadd.assert_called_once_with("QT:quests", "q1")
        pipe.hset.assert_any_call("QT:metadata", "modifiedTimestamp", "T1")
        pipe.ltrim.assert_called_once_with("QT:changelog", -200, -1)
        pipe.execute.assert_called_once()

        record = ChangeRecord.model_validate_json(pipe.rpush.call_args.args[1])
        assert record.description == "Edit"
        assert record.entities == ["quests/q1"]

    def test_transaction_groups_entities(self) -> None:
        store, client, pipe = _make_store()
        with store.transaction("Add objective"):
            store.write_field("objectives", "o1", "title", "Step")
            store.write_field("quests", "q1", "objectiveIds", ["o1"])

        client.pipeline.assert_called_once()
        pipe.execute.assert_called_once()
        assert pipe.sadd.call_count == 2

    def test_delete(self) -> None:
        store, _, pipe = _make_store()
        store.delete_entity("notes", "n1")
        pipe.delete.assert_called_once_with("QT:notes:n1")
        pipe.srem.assert_called_once_with("QT:notes", "n1")
        pipe.execute.assert_called_once()

    def test_rollback_sends_nothing(self) -> None:
        store, client, _ = _make_store()
        with pytest.raises(RuntimeError):
            with store.transaction("Broken"):
                store.write_field("quests", "q1", "title", "A")
                raise RuntimeError("boom")
        client.pipeline.assert_not_called()

    def test_execute_failure_propagates(self) -> None:
        store, _, pipe = _make_store()
        pipe.execute.side_effect = ConnectionError("refused")
        with pytest.raises(ConnectionError):
            store.write_field("quests", "q1", "title", "A")
        assert not store.in_transaction


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_read_field_decodes_json(self) -> None:
        store, client, _ = _make_store()
        client.hget.return_value = json.dumps(["o1", "o2"])
        assert store.read_field("quests", "q1", "objectiveIds") == ["o1", "o2"]
        client.hget.assert_called_once_with("QT:quests:q1", "objectiveIds")

    def test_read_missing_field(self) -> None:
        store, client, _ = _make_store()
        client.hget.return_value = None
        assert store.read_field("quests", "q1", "title") is None

    def test_list_known_ids_sorted(self) -> None:
        store, client, _ = _make_store()
        client.smembers.return_value = {"b", "a", "c"}
        assert store.list_known_ids("quests") == ["a", "b", "c"]
        client.smembers.assert_called_once_with("QT:quests")

    def test_read_entity_requires_index_membership(self) -> None:
        store, client, _ = _make_store()
        client.sismember.return_value = False
        assert store.read_entity("quests", "q1") is None
        client.hgetall.assert_not_called()

    def test_read_entity(self) -> None:
        store, client, _ = _make_store()
        client.sismember.return_value = True
        client.hgetall.return_value = {"title": '"A"', "rewardsClaimed": "true"}
        assert store.read_entity("quests", "q1") == {"title": "A", "rewardsClaimed": True}

    def test_staged_write_shadows_redis(self) -> None:
        store, client, _ = _make_store()
        client.hget.return_value = json.dumps("Old")
        with store.transaction("Edit"):
            store.write_field("quests", "q1", "title", "New")
            assert store.read_field("quests", "q1", "title") == "New"


# ---------------------------------------------------------------------------
# Metadata and change log
# ---------------------------------------------------------------------------


class TestMetadata:
    def test_initialize_new_namespace(self) -> None:
        store, client, _ = _make_store()
        client.hsetnx.return_value = 1
        store.initialize("Saga")
        client.hsetnx.assert_called_once_with("QT:metadata", "createdTimestamp", "T1")
        mapping = client.hset.call_args.kwargs["mapping"]
        assert mapping["campaignName"] == "Saga"

    def test_initialize_existing_namespace(self) -> None:
        store, client, _ = _make_store()
        client.hsetnx.return_value = 0
        store.initialize("Saga")
        client.hset.assert_not_called()

    def test_metadata(self) -> None:
        store, client, _ = _make_store()
        client.hgetall.return_value = {
            "campaignName": "Saga",
            "version": "1",
            "createdTimestamp": "T0",
            "modifiedTimestamp": "T1",
        }
        metadata = store.metadata
        assert metadata.campaign_name == "Saga"
        assert metadata.version == 1

    def test_change_log(self) -> None:
        store, client, _ = _make_store()
        record = ChangeRecord(description="Edit", timestamp="T1", entities=["quests/q1"])
        client.lrange.return_value = [record.model_dump_json(by_alias=True)]
        assert store.change_log == [record]

    def test_from_url(self) -> None:
        with patch("quest_tracker.redis_store.redis.Redis.from_url") as from_url:
            store = RedisDocumentStore.from_url("redis://localhost:6379", namespace="X")
        from_url.assert_called_once_with("redis://localhost:6379", decode_responses=True)
        assert store.backend == "redis"
