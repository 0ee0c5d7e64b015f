"""Error taxonomy for the recorder.

Every error carries the HTTP status it maps to; ``main.py`` renders them as
``{"error": message}``.
"""

from typing import Optional


class RecorderError(Exception):
    """Base exception for all recorder errors."""

    status_code = 500
    public_message: Optional[str] = None

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    @property
    def response_message(self) -> str:
        return self.public_message or self.message


class InvalidPayload(RecorderError):
    """Report body is not a usable location object."""

    status_code = 400


class InvalidTopic(RecorderError):
    """Topic missing or not ``owntracks/<user>/<device>``."""

    status_code = 400


class NotFound(RecorderError):
    """No last-location entry stored for the requested key."""

    status_code = 404


class InternalError(RecorderError):
    """A step of ingestion or a query failed for a non-client reason.

    The message is logged; clients only see a generic message.
    """

    status_code = 500
    public_message = "Internal server error"


class StorageError(RecorderError):
    """Backing store failure (driver error, unreadable value)."""

    status_code = 500
    public_message = "Internal server error"


class IndexConflict(StorageError):
    """Compare-and-set on an index key kept losing to concurrent writers."""

    def __init__(self, key: str, attempts: int) -> None:
        self.key = key
        self.attempts = attempts
        super().__init__(f"index key {key!r} still conflicting after {attempts} attempts")
