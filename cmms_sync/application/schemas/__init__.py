from .change_feed import ChangeFeedMessage, RowDecoder

__all__ = [
    "ChangeFeedMessage",
    "RowDecoder",
]
