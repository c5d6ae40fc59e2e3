"""Domain entity for the authenticated user session."""

from dataclasses import dataclass, field


@dataclass
class Session:
    """Identity issued by the authentication provider."""

    user_id: str
    role: str
    access_token: str
    permissions: list[str] = field(default_factory=list)
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def has_permission(self, permission: str) -> bool:
        """Admins hold every permission; others need it listed explicitly."""
        return self.is_admin or permission in self.permissions
