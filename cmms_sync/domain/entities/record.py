"""Domain entity — a single row of any entity collection."""

import time
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4


def tentative_id(prefix: str, millis: int | None = None) -> str:
    """Client-side identifier used until the service assigns one (e.g. ``wo-1718000000000``)."""
    if millis is None:
        millis = int(time.time() * 1000)
    return f"{prefix}-{millis}"


def new_client_token() -> str:
    return uuid4().hex


@dataclass
class Record:
    """A domain entity (work order, asset, message, ...) keyed by ``id``.

    ``data`` holds the camelCase domain fields. ``client_token`` is the
    idempotency token minted on create; the service echoes it back so a
    confirmed row can be matched to the tentative one it replaces.
    """

    id: str
    data: dict[str, Any] = field(default_factory=dict)
    client_token: str | None = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def merged(self, fields: dict[str, Any]) -> "Record":
        """Return a copy with ``fields`` applied over the current data."""
        return replace(self, data={**self.data, **fields})

    def copy(self) -> "Record":
        return replace(self, data=dict(self.data))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.data}
