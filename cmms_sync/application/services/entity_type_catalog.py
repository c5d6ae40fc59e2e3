"""Entity-type catalog — parses the YAML description of every synced collection."""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from cmms_sync.domain.entities import EntityType
from cmms_sync.domain.exceptions import UnknownEntityTypeError

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("tag", "endpoint", "id_prefix", "label")


class EntityTypeCatalog:
    """Read-only lookup of EntityType definitions by tag."""

    def __init__(self, entity_types: list[EntityType]):
        self._by_tag: dict[str, EntityType] = {}
        for entity_type in entity_types:
            if entity_type.tag in self._by_tag:
                raise ValueError(f"Duplicate entity type '{entity_type.tag}'")
            self._by_tag[entity_type.tag] = entity_type

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EntityTypeCatalog":
        """Load the catalog from a YAML file with a top-level ``entity_types`` list."""
        path = Path(path)
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        entries = data.get("entity_types") or []
        entity_types = [cls._parse_entry(entry, path) for entry in entries]
        logger.info("Loaded %d entity types from %s", len(entity_types), path.name)
        return cls(entity_types)

    @staticmethod
    def _parse_entry(entry: dict[str, Any], path: Path) -> EntityType:
        missing = [key for key in _REQUIRED_KEYS if not entry.get(key)]
        if missing:
            raise ValueError(f"{path.name}: entity type {entry.get('tag', '?')!r} lacks {', '.join(missing)}")

        return EntityType(
            tag=entry["tag"],
            endpoint=entry["endpoint"],
            table=entry.get("table") or entry["tag"],
            id_prefix=entry["id_prefix"],
            label=entry["label"],
            fields=tuple(entry.get("fields") or ()),
            wire_names=dict(entry.get("wire_names") or {}),
            remote=bool(entry.get("remote", True)),
        )

    def get(self, tag: str) -> EntityType:
        try:
            return self._by_tag[tag]
        except KeyError:
            raise UnknownEntityTypeError(tag) from None

    def __contains__(self, tag: object) -> bool:
        return tag in self._by_tag

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self._by_tag.values())

    def __len__(self) -> int:
        return len(self._by_tag)

    @property
    def tags(self) -> list[str]:
        return list(self._by_tag)
