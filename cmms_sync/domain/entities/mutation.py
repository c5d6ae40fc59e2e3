"""Domain entity for optimistic mutations — one per submitted create/update/delete."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationState(str, Enum):
    """Lifecycle states of an optimistic mutation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Mutation:
    """A local change applied ahead of the service's answer.

    Starts PENDING once the optimistic change is visible and ends either
    CONFIRMED (the local record now mirrors the server row) or ROLLED_BACK
    (the collection is back to its pre-mutation state).
    """

    entity: str
    kind: MutationKind
    record_id: str
    client_token: str | None = None
    state: MutationState = MutationState.PENDING
    error_message: str | None = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.state is not MutationState.PENDING

    def mark_confirmed(self, record_id: str | None = None) -> None:
        """Transition to confirmed, adopting the server id when it differs."""
        self.state = MutationState.CONFIRMED
        if record_id is not None:
            self.record_id = record_id
        self.resolved_at = datetime.now(timezone.utc)

    def mark_rolled_back(self, error: str) -> None:
        """Transition to rolled back."""
        self.state = MutationState.ROLLED_BACK
        self.error_message = error
        self.resolved_at = datetime.now(timezone.utc)
