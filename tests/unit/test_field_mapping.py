"""Unit tests for camelCase/snake_case field translation."""

from pathlib import Path

import pytest

from cmms_sync.application.services import EntityTypeCatalog
from cmms_sync.domain.entities import EntityType
from cmms_sync.infrastructure.http import FieldMapper, camel_to_snake, snake_to_camel

CATALOG_FILE = Path(__file__).resolve().parents[2] / "cmms_sync" / "data" / "entity_types.yaml"


@pytest.mark.parametrize(
    "camel, snake",
    [
        ("assetId", "asset_id"),
        ("minQuantity", "min_quantity"),
        ("relatedEntityId", "related_entity_id"),
        ("title", "title"),
    ],
)
def test_generic_conversion(camel: str, snake: str):
    assert camel_to_snake(camel) == snake
    assert snake_to_camel(snake) == camel


@pytest.mark.parametrize(
    "camel, snake",
    [
        ("URL", "url"),
        ("manualURL", "manual_url"),
        ("HTTPStatus", "http_status"),
        ("sensor2Reading", "sensor2_reading"),
    ],
)
def test_capital_runs_stay_together(camel: str, snake: str):
    assert camel_to_snake(camel) == snake


def test_declared_acronym_field_round_trips():
    mapper = FieldMapper(EntityType("docs", "docs", "docs", "doc", "Document", fields=("manualURL",)))

    assert mapper.to_wire({"manualURL": "https://x"}) == {"manual_url": "https://x"}
    assert mapper.from_wire({"id": "1", "manual_url": "https://x"}).data == {"manualURL": "https://x"}


@pytest.mark.parametrize("entity_type", list(EntityTypeCatalog.from_yaml(CATALOG_FILE)), ids=lambda et: et.tag)
def test_every_declared_field_reads_back(entity_type: EntityType):
    """Whatever create/update writes must come back under the same local name."""
    mapper = FieldMapper(entity_type)
    data = {name: f"value-of-{name}" for name in entity_type.fields}

    record = mapper.from_wire({"id": 1, **mapper.to_wire(data)})

    assert record.id == "1"
    assert record.data == data


def test_wire_name_override_round_trips():
    entity_type = EntityType(
        tag="assets",
        endpoint="assets",
        table="assets",
        id_prefix="ast",
        label="Asset",
        fields=("serialNumber",),
        wire_names={"serialNumber": "serial_no"},
    )
    mapper = FieldMapper(entity_type)

    assert mapper.to_wire({"serialNumber": "SN-1"}) == {"serial_no": "SN-1"}
    assert mapper.from_wire({"id": "a", "serial_no": "SN-1"}).data == {"serialNumber": "SN-1"}


def test_undeclared_fields_are_kept():
    mapper = FieldMapper(EntityType("x", "x", "x", "x", "X", fields=()))
    record = mapper.from_wire({"id": "1", **mapper.to_wire({"healthScore": 90})})
    assert record.data == {"healthScore": 90}


def test_snake_case_value_wins_over_camel_case_unless_null():
    mapper = FieldMapper(EntityType("wo", "wo", "wo", "wo", "WO", fields=("assetId", "dueDate")))

    record = mapper.from_wire(
        {"id": "1", "assetId": "camel", "asset_id": "snake", "due_date": None, "dueDate": "2024-05-01"}
    )

    assert record.data == {"assetId": "snake", "dueDate": "2024-05-01"}


def test_client_token_is_split_off():
    mapper = FieldMapper(EntityType("wo", "wo", "wo", "wo", "WO"))
    record = mapper.from_wire({"id": "1", "client_token": "tok", "title": "A"})
    assert record.client_token == "tok"
    assert record.data == {"title": "A"}


def test_row_without_id_is_rejected():
    mapper = FieldMapper(EntityType("wo", "wo", "wo", "wo", "WO"))
    with pytest.raises(ValueError):
        mapper.from_wire({"title": "A"})
