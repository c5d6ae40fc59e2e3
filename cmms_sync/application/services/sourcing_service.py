"""Sourcing use cases — broadcast material and service needs to vendors."""

import logging
from datetime import datetime, timezone

from cmms_sync.application.services.activity_recorder import ActivityRecorder
from cmms_sync.application.services.notifier import Notifier
from cmms_sync.application.services.session_manager import SessionManager
from cmms_sync.application.services.store_registry import StoreRegistry
from cmms_sync.domain.entities import ActivityType, Mutation, MutationState

logger = logging.getLogger(__name__)


class SourcingService:
    """Creates material requests and service broadcasts.

    The activity entry and the OS notification are only raised once the
    service has confirmed the broadcast.
    """

    def __init__(
        self,
        registry: StoreRegistry,
        sessions: SessionManager,
        notifier: Notifier,
        activity: ActivityRecorder,
    ) -> None:
        self._material_requests = registry.register("material_requests")
        self._service_broadcasts = registry.register("service_broadcasts")
        self._sessions = sessions
        self._notifier = notifier
        self._activity = activity

    async def broadcast_material_request(
        self,
        item_name: str,
        quantity: int,
        location: str,
        vendor_ids: list[str],
        *,
        quality_specs: str | None = None,
    ) -> Mutation:
        fields = self._base_fields(vendor_ids)
        fields.update(
            {
                "itemName": item_name,
                "quantity": quantity,
                "location": location,
                "qualitySpecs": quality_specs,
            }
        )
        mutation = await self._material_requests.create(fields, success_message="Material request broadcast")
        if mutation.state is MutationState.CONFIRMED:
            self._activity.record(
                fields["createdBy"],
                "Broadcasted Material Request",
                ActivityType.CREATE,
                f"{item_name} to {len(vendor_ids)} vendors",
            )
            self._notifier.system("Material Request Broadcast", f"Requesting {quantity}x {item_name} at {location}")
        return mutation

    async def broadcast_service_call(
        self,
        title: str,
        description: str,
        location: str,
        priority: str,
        contractor_ids: list[str],
    ) -> Mutation:
        fields = self._base_fields(contractor_ids)
        fields.update(
            {
                "title": title,
                "description": description,
                "location": location,
                "priority": priority,
            }
        )
        mutation = await self._service_broadcasts.create(fields, success_message="Service call broadcast")
        if mutation.state is MutationState.CONFIRMED:
            self._activity.record(
                fields["createdBy"],
                "Broadcasted Service Call",
                ActivityType.CREATE,
                f"{title} to {len(contractor_ids)} contractors",
            )
            self._notifier.system("Service Help Needed!", f"{priority} PRIORITY: {title} at {location}")
        return mutation

    def _base_fields(self, vendor_ids: list[str]) -> dict:
        session = self._sessions.session
        return {
            "notifiedVendorIds": list(vendor_ids),
            "status": "OPEN",
            "createdBy": session.user_id if session else "unknown",
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
