"""Inventory use cases — stock consumption with low-stock alerts."""

import asyncio
import logging

from cmms_sync.application.services.activity_recorder import ActivityRecorder
from cmms_sync.application.services.notifier import Notifier
from cmms_sync.application.services.store_registry import StoreRegistry
from cmms_sync.domain.entities import ActivityType, MutationState
from cmms_sync.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)


class InventoryService:
    """Consumes stock through the inventory store's optimistic updates.

    When an item drops to or below its minimum quantity the user gets a
    warning toast, an OS notification, and a SYSTEM entry in the activity feed.
    """

    def __init__(
        self,
        registry: StoreRegistry,
        notifier: Notifier,
        activity: ActivityRecorder,
        *,
        alerts_enabled: bool = True,
    ) -> None:
        self._inventory = registry.register("inventory")
        self._notifier = notifier
        self._activity = activity
        self._alerts_enabled = alerts_enabled
        self._lock = asyncio.Lock()

    async def consume(self, inventory_id: str, quantity: int) -> bool:
        """Take ``quantity`` units out of stock. Returns False if nothing was consumed."""
        async with self._lock:
            item = self._inventory.get(inventory_id)
            if item is None:
                raise EntityNotFoundError("Inventory item", inventory_id)
            if quantity <= 0:
                self._notifier.error("Quantity must be positive.")
                return False

            available = item.get("quantity", 0)
            if available < quantity:
                self._notifier.error("Insufficient stock available.")
                return False

            remaining = available - quantity
            mutation = await self._inventory.update(item.id, {"quantity": remaining}, quiet=True)
            if mutation.state is MutationState.ROLLED_BACK:
                self._notifier.error(mutation.error_message or "Could not update stock.")
                return False

        minimum = item.get("minQuantity", 0) or 0
        if self._alerts_enabled and remaining <= minimum:
            self._raise_stock_alert(item.get("name", item.id), remaining, minimum)
        return True

    def _raise_stock_alert(self, name: str, remaining: int, minimum: int) -> None:
        critical = remaining == 0
        if critical:
            message = f"CRITICAL: {name} is OUT OF STOCK!"
        else:
            message = f"LOW STOCK: {name} fell below minimum ({remaining} left)"

        logger.warning(message)
        self._notifier.warning(message)
        self._activity.record(
            "sys",
            "Stock Depleted" if critical else "Low Stock Warning",
            ActivityType.SYSTEM,
            f"{name} (Qty: {remaining} / Min: {minimum}) - Admin Notified",
            id_prefix="sys-alert",
        )
        self._notifier.system("CRITICAL STOCK ALERT" if critical else "Low Stock Warning", message)
