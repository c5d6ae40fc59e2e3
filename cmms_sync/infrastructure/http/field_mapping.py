"""Field translation between local camelCase records and snake_case wire rows."""

import re
from typing import Any

from cmms_sync.domain.entities import EntityType, Record

# Split before a capital that follows a lower-case letter or digit, and before
# the last capital of a run that starts a new word (HTTPStatus -> http_status).
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

TOKEN_WIRE_NAME = "client_token"


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class FieldMapper:
    """Bidirectional, total field-name translation for one entity type.

    Declared fields use the entity type's ``wire_names`` override or the
    generic snake_case spelling. Undeclared keys fall back to the generic
    conversion in both directions, so nothing written is lost on read-back.
    The generic spelling of an acronym is not reversible (``manualURL`` goes
    out as ``manual_url`` and an undeclared key reads back as ``manualUrl``),
    so such fields belong in ``fields`` or ``wire_names``.
    Rows coming back may use either spelling (``asset_id`` or ``assetId``);
    the snake_case value wins unless it is null.
    """

    def __init__(self, entity_type: EntityType) -> None:
        self.entity_type = entity_type
        self._to_wire: dict[str, str] = {
            name: entity_type.wire_names.get(name, camel_to_snake(name))
            for name in entity_type.fields
        }
        for name, wire in entity_type.wire_names.items():
            self._to_wire.setdefault(name, wire)
        self._from_wire: dict[str, str] = {wire: name for name, wire in self._to_wire.items()}

    def wire_name(self, name: str) -> str:
        return self._to_wire.get(name) or camel_to_snake(name)

    def local_name(self, wire: str) -> str:
        return self._from_wire.get(wire) or snake_to_camel(wire)

    def to_wire(self, data: dict[str, Any]) -> dict[str, Any]:
        """Translate local fields to a request body."""
        return {self.wire_name(key): value for key, value in data.items()}

    def from_wire(self, row: dict[str, Any]) -> Record:
        """Build a Record from a response row or change-feed row."""
        if row.get("id") is None:
            raise ValueError(f"{self.entity_type.tag} row without an id")
        row = dict(row)
        record_id = str(row.pop("id"))
        client_token = row.pop(TOKEN_WIRE_NAME, None) or row.pop("clientToken", None)
        row.pop("clientToken", None)

        data: dict[str, Any] = {}
        translated: set[str] = set()
        for key, value in row.items():
            name = self.local_name(key)
            if name == key:
                if name not in translated:
                    data[name] = value
                elif data.get(name) is None:
                    data[name] = value
            elif value is not None or name not in data:
                data[name] = value
                translated.add(name)
        return Record(id=record_id, data=data, client_token=client_token)
