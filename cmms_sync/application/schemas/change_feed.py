"""Pydantic DTOs for change-feed messages."""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cmms_sync.domain.entities import ChangeEvent, ChangeEventType, Record

# Turns a wire row into a domain Record (see FieldMapper.from_wire)
RowDecoder = Callable[[dict[str, Any]], Record]


class ChangeFeedMessage(BaseModel):
    """One realtime message: ``{"eventType": "INSERT", "new": {...}, "old": {...}}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: ChangeEventType = Field(..., alias="eventType")
    table: str | None = None
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_rows(self) -> "ChangeFeedMessage":
        if self.event_type is ChangeEventType.DELETE:
            if not self.old or self.old.get("id") is None:
                raise ValueError("DELETE message needs old.id")
        elif not self.new or self.new.get("id") is None:
            raise ValueError(f"{self.event_type.value} message needs new.id")
        return self

    def to_event(self, table: str, decode: RowDecoder) -> ChangeEvent:
        if self.event_type is ChangeEventType.DELETE:
            return ChangeEvent(
                type=self.event_type,
                table=self.table or table,
                old_id=str(self.old["id"]),
            )
        return ChangeEvent(
            type=self.event_type,
            table=self.table or table,
            record=decode(self.new),
            old_id=str(self.old["id"]) if self.old and self.old.get("id") is not None else None,
        )
