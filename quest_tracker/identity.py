"""Identity and clock collaborator for the quest manager."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

GUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def is_guid(value: str) -> bool:
    """Whether *value* has the canonical 36-character GUID shape."""
    return len(value) == 36 and GUID_PATTERN.match(value) is not None


def format_timestamp(moment: datetime) -> str:
    """Render a UTC datetime as fixed-width ISO-8601 with a ``Z`` suffix."""
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class IdentityProvider:
    """Hands out ids, the acting user and timestamps.

    Timestamps issued by one provider are strictly increasing, so two writes
    in the same microsecond still stamp distinct ``modifiedTimestamp`` values.
    """

    def __init__(
        self,
        actor_id: str = "",
        is_operator: bool = False,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._actor_id = actor_id
        self.is_operator = is_operator
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._last_issued: datetime | None = None

    def new_id(self) -> str:
        return self._id_factory()

    def current_actor_id(self) -> str:
        return self._actor_id

    def now(self) -> datetime:
        moment = self._clock().astimezone(UTC)
        if self._last_issued is not None and moment <= self._last_issued:
            moment = self._last_issued + timedelta(microseconds=1)
        self._last_issued = moment
        return moment

    def now_utc_iso8601(self) -> str:
        return format_timestamp(self.now())
