"""Typed errors raised by the ledger stores and the state machine.

Every failure reaches the immediate caller as one of these (or as the
upstream exception, untouched). `details` carries enough context for a
transport layer to render a response without inspecting the message.
"""

from enum import StrEnum
from typing import Any


class NotFoundReason(StrEnum):
    UNKNOWN_RECORD = "unknown_record"
    NO_CONFIRMED_HISTORY = "no_confirmed_history"
    OBJECT_NOT_FOUND = "object_not_found"
    OBJECT_DELETED = "object_deleted"
    BLOCK_NOT_FOUND = "block_not_found"
    EVENT_NOT_FOUND = "event_not_found"


class LedgerError(Exception):
    http_status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        self.details = details
        super().__init__(message)


class NotFoundError(LedgerError):
    """A record, object, block or event is absent.

    Unknown records and records without confirmed history share this type;
    `reason` tells them apart.
    """

    http_status_code = 404

    def __init__(self, message: str, reason: NotFoundReason, **details: Any) -> None:
        self.reason = reason
        super().__init__(message, **details)


class BadRequestError(LedgerError, ValueError):
    http_status_code = 400


class DuplicateError(LedgerError):
    http_status_code = 409

    def __init__(self, duplicates: list[tuple[str, str]]) -> None:
        self.duplicates = duplicates
        super().__init__(
            f"Duplicate operations: {len(duplicates)}", duplicates=duplicates
        )
