"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist in a local collection."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class DuplicateEntityError(Exception):
    """Raised when attempting to create a duplicate entity."""

    def __init__(self, entity_type: str, field: str, value: str):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(f"{entity_type} with {field}='{value}' already exists")


class UnknownEntityTypeError(Exception):
    """Raised when an entity-type tag is not part of the catalog or registry."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Unknown entity type '{tag}'")


class RemoteError(Exception):
    """Raised when the persistence service rejects or cannot serve a request.

    Transport-agnostic — adapters translate their own failures into one of
    the subclasses below. None of them is retried automatically.
    """

    def __init__(self, entity: str, message: str, status_code: int | None = None):
        self.entity = entity
        self.message = message
        self.status_code = status_code
        prefix = f"[{entity}] {status_code}" if status_code is not None else f"[{entity}]"
        super().__init__(f"{prefix}: {message}")


class ValidationError(RemoteError):
    """The service rejected the payload (4xx)."""


class AuthenticationError(ValidationError):
    """The session is no longer valid (401)."""


class ServerError(RemoteError):
    """The service failed while handling the request (5xx)."""


class NetworkError(RemoteError):
    """The request never reached the service."""


class MutationTimeoutError(NetworkError):
    """A remote call stayed unanswered past the mutation timeout."""

    def __init__(self, entity: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(entity, f"No response after {timeout_seconds:g}s")
