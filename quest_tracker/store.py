"""Document store collaborator for the quest manager.

The store keeps three flat collections (quests, objectives, notes) of
field mappings keyed by entity id. Writes are staged per thread inside a
transaction and applied by the backend in a single commit, so readers only
ever observe whole transactions.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from quest_tracker.identity import format_timestamp
from quest_tracker.metrics import STORE_COMMIT_DURATION, STORE_TRANSACTIONS
from quest_tracker.models import (
    ChangeRecord,
    DocumentMetadata,
    EntityKind,
    QuestLogDocument,
)

logger = logging.getLogger(__name__)

DEFAULT_CHANGE_DESCRIPTION = "Update quest log"
DEFAULT_CHANGE_LOG_LIMIT = 200

EntityKey = tuple[str, str]


def _utc_now() -> str:
    return format_timestamp(datetime.now(UTC))


class PendingChanges:
    """Writes and deletions staged by an open transaction."""

    def __init__(self, description: str) -> None:
        self.description = description
        self.writes: dict[EntityKey, dict[str, Any]] = {}
        self.deleted: dict[EntityKey, None] = {}

    def __bool__(self) -> bool:
        return bool(self.writes or self.deleted)

    def stage(self, key: EntityKey, fields: dict[str, Any]) -> None:
        self.writes.setdefault(key, {}).update(copy.deepcopy(fields))

    def delete(self, key: EntityKey) -> None:
        self.writes.pop(key, None)
        self.deleted[key] = None

    @property
    def entities(self) -> list[str]:
        touched = list(dict.fromkeys([*self.deleted, *self.writes]))
        return [f"{kind}/{entity_id}" for kind, entity_id in touched]


class DocumentStore(ABC):
    """Keyed field storage with atomic grouped writes.

    Subclasses provide committed reads and a single ``_commit`` that applies
    a whole :class:`PendingChanges` at once.
    """

    backend = "abstract"

    def __init__(
        self,
        change_log_limit: int = DEFAULT_CHANGE_LOG_LIMIT,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._change_log_limit = change_log_limit
        self._clock = clock or _utc_now
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _load_field(self, kind: str, entity_id: str, field: str) -> Any: ...

    @abstractmethod
    def _load_entity(self, kind: str, entity_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def _load_ids(self, kind: str) -> list[str]: ...

    @abstractmethod
    def _commit(self, pending: PendingChanges, record: ChangeRecord) -> None: ...

    @property
    @abstractmethod
    def change_log(self) -> list[ChangeRecord]: ...

    @property
    @abstractmethod
    def metadata(self) -> DocumentMetadata: ...

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def _pending(self) -> PendingChanges | None:
        return getattr(self._local, "pending", None)

    @property
    def in_transaction(self) -> bool:
        return self._pending is not None

    @contextmanager
    def transaction(self, change_description: str | None = None) -> Iterator[None]:
        """Group every write made inside the block into one commit.

        Nested blocks join the outermost transaction, whose description is
        the one recorded in the change log. An exception discards all staged
        writes and propagates.
        """
        if self._pending is not None:
            yield
            return

        pending = PendingChanges(change_description or DEFAULT_CHANGE_DESCRIPTION)
        self._local.pending = pending
        try:
            yield
        except BaseException:
            self._local.pending = None
            STORE_TRANSACTIONS.labels(backend=self.backend, outcome="rolled_back").inc()
            logger.warning("Discarded transaction '%s'", pending.description)
            raise
        self._local.pending = None

        if not pending:
            return

        record = ChangeRecord(
            description=pending.description,
            timestamp=self._clock(),
            entities=pending.entities,
        )
        start = time.perf_counter()
        try:
            self._commit(pending, record)
        except Exception:
            STORE_TRANSACTIONS.labels(backend=self.backend, outcome="rolled_back").inc()
            logger.error("Commit of '%s' failed", pending.description)
            raise
        STORE_COMMIT_DURATION.labels(backend=self.backend).observe(
            time.perf_counter() - start
        )
        STORE_TRANSACTIONS.labels(backend=self.backend, outcome="committed").inc()
        logger.debug(
            "Committed '%s' (%d entities)", pending.description, len(record.entities)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_field(self, kind: str, entity_id: str, field: str) -> Any:
        """Return the field value, or None when the entity or field is absent."""
        kind = EntityKind(kind).value
        pending = self._pending
        if pending is not None:
            key = (kind, entity_id)
            staged = pending.writes.get(key)
            if staged is not None and field in staged:
                return copy.deepcopy(staged[field])
            if key in pending.deleted:
                return None
        return copy.deepcopy(self._load_field(kind, entity_id, field))

    def read_entity(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        """Return every stored field of an entity, or None if it does not exist."""
        kind = EntityKind(kind).value
        key = (kind, entity_id)
        pending = self._pending
        if pending is not None and key in pending.deleted:
            committed = None
        else:
            committed = self._load_entity(kind, entity_id)

        staged = pending.writes.get(key) if pending is not None else None
        if committed is None and staged is None:
            return None
        fields = copy.deepcopy(committed) if committed else {}
        if staged:
            fields.update(copy.deepcopy(staged))
        return fields

    def list_known_ids(self, kind: str) -> list[str]:
        kind = EntityKind(kind).value
        ids = self._load_ids(kind)
        pending = self._pending
        if pending is None:
            return ids

        known = [
            entity_id
            for entity_id in ids
            if (kind, entity_id) not in pending.deleted or (kind, entity_id) in pending.writes
        ]
        seen = set(known)
        for staged_kind, entity_id in pending.writes:
            if staged_kind == kind and entity_id not in seen:
                known.append(entity_id)
                seen.add(entity_id)
        return known

    def exists(self, kind: str, entity_id: str) -> bool:
        return entity_id in self.list_known_ids(kind)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_field(
        self,
        kind: str,
        entity_id: str,
        field: str,
        value: Any,
        change_description: str | None = None,
    ) -> None:
        self.write_fields(kind, entity_id, {field: value}, change_description)

    def write_fields(
        self,
        kind: str,
        entity_id: str,
        fields: dict[str, Any],
        change_description: str | None = None,
    ) -> None:
        """Write several fields of one entity as a single atomic change."""
        kind = EntityKind(kind).value
        with self.transaction(change_description):
            self._pending.stage((kind, entity_id), fields)

    def delete_entity(
        self, kind: str, entity_id: str, change_description: str | None = None
    ) -> None:
        kind = EntityKind(kind).value
        with self.transaction(change_description):
            self._pending.delete((kind, entity_id))


class MemoryDocumentStore(DocumentStore):
    """Process-local store; commits swap fields in under a lock."""

    backend = "memory"

    def __init__(
        self,
        campaign_name: str = "Default Campaign",
        change_log_limit: int = DEFAULT_CHANGE_LOG_LIMIT,
        clock: Callable[[], str] | None = None,
    ) -> None:
        super().__init__(change_log_limit=change_log_limit, clock=clock)
        self._lock = threading.RLock()
        now = self._clock()
        self._document = QuestLogDocument(
            metadata=DocumentMetadata(
                campaign_name=campaign_name,
                created_timestamp=now,
                modified_timestamp=now,
            )
        )

    def _collection(self, kind: str) -> dict[str, dict[str, Any]]:
        return getattr(self._document, kind)

    def _load_field(self, kind: str, entity_id: str, field: str) -> Any:
        with self._lock:
            return self._collection(kind).get(entity_id, {}).get(field)

    def _load_entity(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        with self._lock:
            fields = self._collection(kind).get(entity_id)
            return copy.deepcopy(fields) if fields is not None else None

    def _load_ids(self, kind: str) -> list[str]:
        with self._lock:
            return list(self._collection(kind))

    def _commit(self, pending: PendingChanges, record: ChangeRecord) -> None:
        with self._lock:
            # The live document is only replaced once the new one is persisted.
            document = self._document.model_copy(deep=True)
            for kind, entity_id in pending.deleted:
                getattr(document, kind).pop(entity_id, None)
            for (kind, entity_id), fields in pending.writes.items():
                getattr(document, kind).setdefault(entity_id, {}).update(fields)

            document.metadata.modified_timestamp = record.timestamp
            document.change_log.append(record)
            del document.change_log[: -self._change_log_limit]
            self._persist(document)
            self._document = document

    def _persist(self, document: QuestLogDocument) -> None:
        """Hook for subclasses that write the document somewhere durable."""

    @property
    def change_log(self) -> list[ChangeRecord]:
        with self._lock:
            return list(self._document.change_log)

    @property
    def metadata(self) -> DocumentMetadata:
        with self._lock:
            return self._document.metadata.model_copy()


class JsonDocumentStore(MemoryDocumentStore):
    """Memory store that persists the whole quest log to a local JSON file."""

    backend = "json"

    def __init__(
        self,
        storage_path: Path,
        campaign_name: str = "Default Campaign",
        change_log_limit: int = DEFAULT_CHANGE_LOG_LIMIT,
        clock: Callable[[], str] | None = None,
    ) -> None:
        super().__init__(
            campaign_name=campaign_name, change_log_limit=change_log_limit, clock=clock
        )
        self._path = Path(storage_path)
        self._load()

    def _load(self) -> None:
        """Load the quest log from disk. Creates the file if missing."""
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                self._document = QuestLogDocument.model_validate(raw)
                logger.info(
                    "Loaded %d quests from %s", len(self._document.quests), self._path
                )
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.error("Failed to load quest log: %s, starting fresh", exc)
        else:
            logger.info("No quest log found at %s, starting fresh", self._path)
            self._persist(self._document)

    def _persist(self, document: QuestLogDocument) -> None:
        """Write *document* to disk through a temp file swapped into place."""
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_text(
            document.model_dump_json(indent=2, by_alias=True),
            encoding="utf-8",
        )
        tmp_path.replace(self._path)
