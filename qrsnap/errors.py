"""Failure kinds of one acquisition cycle."""
from __future__ import annotations
from enum import Enum


class AcquisitionFailure(str, Enum):
    USER_CANCELLED_OR_NO_DATA = "user_cancelled_or_no_data"
    NO_SELECTION = "no_selection"
    UNREADABLE_CONTENT = "unreadable_content"


class QrSnapError(Exception):
    pass


class AcquisitionFailed(QrSnapError):
    def __init__(self, reason: AcquisitionFailure, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class DecodeError(QrSnapError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvariantViolation(QrSnapError):
    """Raised on caller bugs, e.g. decoding without an image."""
