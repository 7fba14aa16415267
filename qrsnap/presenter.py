from __future__ import annotations
import logging
from enum import Enum
from typing import Union

from qrsnap.capabilities import DialogSurface, NotificationSurface
from qrsnap.config import config
from qrsnap.errors import (
    AcquisitionFailed,
    AcquisitionFailure,
    DecodeError,
    InvariantViolation,
)
from qrsnap.models import DecodedPayload

logger = logging.getLogger("qrsnap.presenter")

Outcome = Union[DecodedPayload, AcquisitionFailed, DecodeError, InvariantViolation]


class Presentation(str, Enum):
    DIALOG = "dialog"
    NOT_FOUND = "not_found"
    CLICK_IMAGE = "click_image"
    SELECT_IMAGE = "select_image"
    ERROR = "error"
    INVARIANT_VIOLATION = "invariant_violation"


ACQUISITION_NOTICES = {
    AcquisitionFailure.USER_CANCELLED_OR_NO_DATA: (Presentation.CLICK_IMAGE, config.NOTICE_CLICK_IMAGE),
    AcquisitionFailure.NO_SELECTION: (Presentation.SELECT_IMAGE, config.NOTICE_SELECT_IMAGE),
    AcquisitionFailure.UNREADABLE_CONTENT: (Presentation.ERROR, config.NOTICE_GENERIC_ERROR),
}


class ResultPresenter:
    """Shows exactly one dialog or notice per acquisition cycle."""

    def __init__(self, notices: NotificationSurface, dialogs: DialogSurface):
        self.notices = notices
        self.dialogs = dialogs

    async def present(self, outcome: Outcome) -> Presentation:
        if isinstance(outcome, DecodedPayload):
            if not outcome:
                await self.notices.notify(config.NOTICE_NOT_FOUND)
                return Presentation.NOT_FOUND
            first = outcome.consumed()[0]
            logger.debug(f"present: dialog {first.data!r}")
            await self.dialogs.show_dialog(config.DIALOG_TITLE, first.data, config.DIALOG_DISMISS_LABEL)
            return Presentation.DIALOG

        if isinstance(outcome, AcquisitionFailed):
            kind, text = ACQUISITION_NOTICES[outcome.reason]
            logger.info(f"acquisition failed: {outcome}")
            await self.notices.notify(text)
            return kind

        if isinstance(outcome, DecodeError):
            logger.warning(f"present: decode failed: {outcome.message}")
            await self.notices.notify(config.NOTICE_GENERIC_ERROR)
            return Presentation.ERROR

        if isinstance(outcome, InvariantViolation):
            logger.error("decode invoked without an image", exc_info=outcome)
            await self.notices.notify(config.NOTICE_GENERIC_ERROR)
            return Presentation.INVARIANT_VIOLATION

        raise TypeError(f"cannot present {type(outcome).__name__}")
