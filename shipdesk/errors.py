from enum import Enum


class ErrorKind(str, Enum):
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    NO_LINE_ITEMS = "NO_LINE_ITEMS"
    NO_VALID_ITEMS = "NO_VALID_ITEMS"
    EXTERNAL_CALL_FAILED = "EXTERNAL_CALL_FAILED"
    PARTIAL_QUANTITY_EXCEEDED = "PARTIAL_QUANTITY_EXCEEDED"
    INVALID_ITEMS = "INVALID_ITEMS"
    INVALID_REQUEST = "INVALID_REQUEST"
    CANCELLED = "CANCELLED"


class FulfillmentError(Exception):
    def __init__(self, kind: ErrorKind, message: str, retriable: bool | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retriable = retriable


class PlatformError(Exception):
    """Non-2xx answer from the commerce platform API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MappingError(ValueError):
    """A platform record is missing a field the engine cannot work without."""
