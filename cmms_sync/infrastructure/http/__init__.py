"""HTTP infrastructure package — REST remote client and field translation."""

from .field_mapping import FieldMapper, camel_to_snake, snake_to_camel
from .rest_remote_client import HttpRemoteClient

__all__ = ["FieldMapper", "HttpRemoteClient", "camel_to_snake", "snake_to_camel"]
