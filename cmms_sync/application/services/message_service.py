"""Messaging use cases — send, read receipts, inbound alerts."""

import logging
from datetime import datetime, timezone

from cmms_sync.application.services.notifier import Notifier
from cmms_sync.application.services.session_manager import SessionManager
from cmms_sync.application.services.store_registry import StoreRegistry
from cmms_sync.domain.entities import ChangeEvent, ChangeEventType, Mutation

logger = logging.getLogger(__name__)

ADMIN_INBOX = "ADMIN"


class MessageService:
    def __init__(
        self,
        registry: StoreRegistry,
        sessions: SessionManager,
        notifier: Notifier,
    ) -> None:
        self._sessions = sessions
        self._notifier = notifier
        self._messages = registry.register("messages", on_event=self.on_inbound)

    async def send(
        self,
        receiver_id: str,
        subject: str,
        body: str,
        *,
        type: str = "GENERAL",
        related_entity_id: str | None = None,
    ) -> Mutation:
        """Send a message from the signed-in user (``receiver_id="ADMIN"`` for the admin inbox)."""
        session = self._sessions.session
        fields = {
            "senderId": session.user_id if session else None,
            "receiverId": receiver_id,
            "subject": subject,
            "body": body,
            "type": type,
            "isRead": False,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        if related_entity_id is not None:
            fields["relatedEntityId"] = related_entity_id
        return await self._messages.create(fields, success_message="Message sent successfully")

    async def mark_read(self, message_id: str) -> bool:
        """Flag a message as read.

        The message stays read even if the service rejects the receipt; the
        failure is only logged. The receipt waits for any other change to
        the same message, so a rolled-back edit cannot un-read it.
        """
        message = self._messages.get(message_id)
        if message is None or message.get("isRead"):
            return False
        if not await self._messages.update_best_effort(message.id, {"isRead": True}):
            logger.debug("Read receipt for %s was not delivered", message_id)
        return True

    def unread_count(self) -> int:
        return sum(1 for message in self._messages.records if self._is_for_me(message.data) and not message.get("isRead"))

    def on_inbound(self, event: ChangeEvent, changed: bool) -> None:
        """Alert the user about a new message that arrived through the change feed."""
        if event.type is not ChangeEventType.INSERT or not changed or event.record is None:
            return
        data = event.record.data
        session = self._sessions.session
        if session is None or data.get("senderId") == session.user_id or not self._is_for_me(data):
            return
        subject = data.get("subject") or "(no subject)"
        self._notifier.info(f"New message: {subject}")
        self._notifier.system("New message", subject)

    def _is_for_me(self, data: dict) -> bool:
        session = self._sessions.session
        if session is None:
            return False
        receiver = data.get("receiverId")
        return receiver == session.user_id or (receiver == ADMIN_INBOX and session.is_admin)
