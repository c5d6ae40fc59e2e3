"""Session manager — holds the signed-in session and tears it down on 401."""

import logging
from collections.abc import Callable

from cmms_sync.domain.entities import Session

logger = logging.getLogger(__name__)


class SessionManager:
    """Current session plus the hook that sends the user back to the login surface."""

    def __init__(
        self,
        session: Session | None = None,
        on_teardown: Callable[[], None] | None = None,
    ) -> None:
        self._session = session
        self._on_teardown = on_teardown

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def sign_in(self, session: Session) -> None:
        self._session = session
        logger.info("Signed in as %s (%s)", session.user_id, session.role)

    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    def teardown(self) -> None:
        """Drop the session (expired or revoked token) and redirect to login."""
        if self._session is None:
            return
        logger.warning("Session for %s is no longer valid — signing out", self._session.user_id)
        self._session = None
        if self._on_teardown is not None:
            self._on_teardown()
