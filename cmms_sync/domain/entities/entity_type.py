"""Domain entity describing one collection (work orders, assets, ...)."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EntityType:
    """Static description of an entity collection and its remote counterpart.

    ``fields`` lists the camelCase domain fields. ``wire_names`` holds the
    snake_case column names that do not follow the generic conversion.
    """

    tag: str                # registry key, e.g. "work_orders"
    endpoint: str           # REST path segment, e.g. "work-orders"
    table: str              # change-feed table name
    id_prefix: str          # tentative id prefix, e.g. "wo"
    label: str              # human label used in notifications, e.g. "Work order"
    fields: tuple[str, ...] = ()
    wire_names: dict[str, str] = field(default_factory=dict, hash=False)
    remote: bool = True     # False for collections that only live client-side
