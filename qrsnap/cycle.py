"""One acquisition cycle: acquire an image, decode it, present the outcome."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from qrsnap.acquirer import ImageAcquirer
from qrsnap.config import config
from qrsnap.errors import AcquisitionFailed, AcquisitionFailure, DecodeError, InvariantViolation
from qrsnap.models import CameraRequest, DecodedPayload, GalleryRequest, Source
from qrsnap.pipeline import DecoderPipeline
from qrsnap.presenter import Outcome, Presentation, ResultPresenter

logger = logging.getLogger("qrsnap.cycle")


class CycleState(str, Enum):
    IDLE = "idle"
    AWAITING_CAMERA = "awaiting_camera"
    AWAITING_GALLERY = "awaiting_gallery"
    DECODING = "decoding"
    PRESENTED = "presented"
    NOT_FOUND = "not_found"
    DECODE_FAILED = "decode_failed"
    ACQUISITION_FAILED = "acquisition_failed"


AWAITING = {Source.CAMERA: CycleState.AWAITING_CAMERA, Source.GALLERY: CycleState.AWAITING_GALLERY}


class CycleTracker:
    """Hands out increasing tokens; only the latest cycle may present."""

    def __init__(self):
        self._latest = 0

    def begin(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    @property
    def latest(self) -> int:
        return self._latest


@dataclass
class CycleReport:
    token: int
    source: Source
    states: List[CycleState] = field(default_factory=lambda: [CycleState.IDLE])
    payload: Optional[DecodedPayload] = None
    error: Optional[Exception] = None
    presentation: Optional[Presentation] = None
    discarded: bool = False

    @property
    def state(self) -> CycleState:
        # Last state before returning to idle
        if len(self.states) > 1 and self.states[-1] is CycleState.IDLE:
            return self.states[-2]
        return self.states[-1]

    def advance(self, state: CycleState) -> None:
        logger.debug(f"cycle {self.token}: {self.states[-1].value} -> {state.value}")
        self.states.append(state)

    def as_event(self) -> Dict[str, Any]:
        return {
            'cycle': self.token,
            'source': self.source.value,
            'state': self.state.value,
            'presentation': self.presentation.value if self.presentation else None,
            'discarded': self.discarded,
            'result_count': len(self.payload) if self.payload is not None else 0,
            'timeline': self.payload.timeline if self.payload is not None else [],
            'error': repr(self.error) if self.error else None,
        }


class Scanner:
    def __init__(
        self,
        acquirer: ImageAcquirer,
        pipeline: DecoderPipeline,
        presenter: ResultPresenter,
        tracker: Optional[CycleTracker] = None,
        record: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.acquirer = acquirer
        self.pipeline = pipeline
        self.presenter = presenter
        self.tracker = tracker or CycleTracker()
        self.record = record

    def _request(self, source: Source):
        if source is Source.CAMERA:
            return CameraRequest(self.acquirer.destination)
        return GalleryRequest(config.GALLERY_MIME_FILTER)

    async def scan(self, source: Source, token: Optional[int] = None) -> CycleReport:
        """Run one cycle. Pass a token taken from the tracker earlier to claim
        the cycle before the coroutine is scheduled."""
        if token is None:
            token = self.tracker.begin()
        report = CycleReport(token=token, source=source)
        outcome: Outcome

        report.advance(AWAITING[source])
        try:
            image = await self.acquirer.acquire(self._request(source))
        except AcquisitionFailed as e:
            report.error = e
            report.advance(CycleState.ACQUISITION_FAILED)
            outcome = e
        except Exception as e:
            logger.error(f"cycle {report.token}: acquisition crashed: {e!r}", exc_info=True)
            outcome = AcquisitionFailed(AcquisitionFailure.UNREADABLE_CONTENT, repr(e))
            report.error = outcome
            report.advance(CycleState.ACQUISITION_FAILED)
        else:
            report.advance(CycleState.DECODING)
            try:
                payload = await self.pipeline.decode(image)
            except (DecodeError, InvariantViolation) as e:
                report.error = e
                report.advance(CycleState.DECODE_FAILED)
                outcome = e
            except Exception as e:
                logger.error(f"cycle {report.token}: decode crashed: {e!r}", exc_info=True)
                outcome = DecodeError(repr(e))
                report.error = outcome
                report.advance(CycleState.DECODE_FAILED)
            else:
                report.payload = payload
                report.advance(CycleState.PRESENTED if payload else CycleState.NOT_FOUND)
                outcome = payload

        if self.tracker.is_current(report.token):
            report.presentation = await self.presenter.present(outcome)
        else:
            report.discarded = True
            logger.info(
                f"cycle {report.token} superseded by {self.tracker.latest}, "
                f"dropping {report.state.value}"
            )

        report.advance(CycleState.IDLE)
        if self.record is not None:
            self.record(report.as_event())
        return report
