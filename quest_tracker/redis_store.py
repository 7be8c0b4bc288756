"""Redis-backed document store.

Each entity is a hash of JSON-encoded field values under
``<namespace>:<kind>:<id>``, with a set per collection listing the known
ids. A commit is one MULTI/EXEC pipeline, so other clients see either none
or all of a transaction's writes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import redis

from quest_tracker.models import ChangeRecord, DocumentMetadata
from quest_tracker.store import DEFAULT_CHANGE_LOG_LIMIT, DocumentStore, PendingChanges

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "QTQuestLog"


class RedisDocumentStore(DocumentStore):
    """Document store shared between processes through Redis."""

    backend = "redis"

    def __init__(
        self,
        client: redis.Redis,
        namespace: str = DEFAULT_NAMESPACE,
        change_log_limit: int = DEFAULT_CHANGE_LOG_LIMIT,
        clock: Callable[[], str] | None = None,
    ) -> None:
        super().__init__(change_log_limit=change_log_limit, clock=clock)
        self._client = client
        self._namespace = namespace

    @classmethod
    def from_url(cls, redis_url: str, **kwargs: Any) -> RedisDocumentStore:
        client = redis.Redis.from_url(redis_url, decode_responses=True)
        return cls(client, **kwargs)

    def initialize(self, campaign_name: str = "Default Campaign") -> None:
        """Create the document metadata if this namespace has none yet."""
        now = self._clock()
        key = self._metadata_key()
        created = self._client.hsetnx(key, "createdTimestamp", now)
        if created:
            self._client.hset(
                key,
                mapping={
                    "campaignName": campaign_name,
                    "version": 1,
                    "modifiedTimestamp": now,
                },
            )
            logger.info("Initialized quest log '%s' in Redis", self._namespace)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _entity_key(self, kind: str, entity_id: str) -> str:
        return f"{self._namespace}:{kind}:{entity_id}"

    def _index_key(self, kind: str) -> str:
        return f"{self._namespace}:{kind}"

    def _metadata_key(self) -> str:
        return f"{self._namespace}:metadata"

    def _change_log_key(self) -> str:
        return f"{self._namespace}:changelog"

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _load_field(self, kind: str, entity_id: str, field: str) -> Any:
        raw = self._client.hget(self._entity_key(kind, entity_id), field)
        return json.loads(raw) if raw is not None else None

    def _load_entity(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        if not self._client.sismember(self._index_key(kind), entity_id):
            return None
        raw = self._client.hgetall(self._entity_key(kind, entity_id))
        return {field: json.loads(value) for field, value in raw.items()}

    def _load_ids(self, kind: str) -> list[str]:
        return sorted(self._client.smembers(self._index_key(kind)))

    def _commit(self, pending: PendingChanges, record: ChangeRecord) -> None:
        pipe = self._client.pipeline(transaction=True)
        for kind, entity_id in pending.deleted:
            pipe.delete(self._entity_key(kind, entity_id))
            pipe.srem(self._index_key(kind), entity_id)
        for (kind, entity_id), fields in pending.writes.items():
            if fields:
                pipe.hset(
                    self._entity_key(kind, entity_id),
                    mapping={name: json.dumps(value) for name, value in fields.items()},
                )
            pipe.sadd(self._index_key(kind), entity_id)
        pipe.hset(self._metadata_key(), "modifiedTimestamp", record.timestamp)
        pipe.rpush(self._change_log_key(), record.model_dump_json(by_alias=True))
        pipe.ltrim(self._change_log_key(), -self._change_log_limit, -1)
        pipe.execute()

    @property
    def change_log(self) -> list[ChangeRecord]:
        raw = self._client.lrange(self._change_log_key(), 0, -1)
        return [ChangeRecord.model_validate_json(item) for item in raw]

    @property
    def metadata(self) -> DocumentMetadata:
        raw = self._client.hgetall(self._metadata_key())
        return DocumentMetadata.model_validate(raw)
