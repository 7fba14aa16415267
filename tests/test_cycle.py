"""
Tests for full acquisition cycles: acquire, decode, present.
"""
import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from PIL import Image

from qrsnap.acquirer import ImageAcquirer
from qrsnap.cycle import CycleState, CycleTracker, Scanner
from qrsnap.decoders.cv_qr_decoder import OpenCvQrDecoder
from qrsnap.errors import AcquisitionFailure
from qrsnap.models import Source
from qrsnap.pipeline import DecoderPipeline
from qrsnap.presenter import Presentation, ResultPresenter

from fakes import FakeCamera, FakeGallery, RecordingSurface, StaticDecoder, qr
from qr_images import blank_image, qr_image, to_bytes


class SpyPipeline(DecoderPipeline):
    def __init__(self, decoders):
        super().__init__(decoders)
        self.calls = 0

    async def decode(self, image):
        self.calls += 1
        return await super().decode(image)


class ScannerTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.destination = Path(self.tmp.name) / "qrcode.jpg"
        self.surface = RecordingSurface()
        self.events = []

    def tearDown(self):
        self.tmp.cleanup()

    def scanner(self, camera=None, gallery=None, decoders=None) -> Scanner:
        self.pipeline = SpyPipeline(decoders or [OpenCvQrDecoder()])
        return Scanner(
            acquirer=ImageAcquirer(camera or FakeCamera(), gallery or FakeGallery(), destination=self.destination),
            pipeline=self.pipeline,
            presenter=ResultPresenter(notices=self.surface, dialogs=self.surface),
            record=self.events.append,
        )

    async def test_camera_round_trip_shows_decoded_text(self):
        scanner = self.scanner(camera=FakeCamera(picture=to_bytes(qr_image("HELLO-QR"), "JPEG", quality=95)))

        report = await scanner.scan(Source.CAMERA)

        self.assertEqual(self.surface.dialogs, [("QR code result:", "HELLO-QR", "ok")])
        self.assertEqual(report.presentation, Presentation.DIALOG)
        self.assertEqual(report.states, [
            CycleState.IDLE, CycleState.AWAITING_CAMERA, CycleState.DECODING,
            CycleState.PRESENTED, CycleState.IDLE,
        ])

    async def test_gallery_round_trip_shows_decoded_text(self):
        scanner = self.scanner(gallery=FakeGallery(content=to_bytes(qr_image("HELLO-QR"))))

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual([body for _, body, _ in self.surface.dialogs], ["HELLO-QR"])
        self.assertEqual(report.states[1], CycleState.AWAITING_GALLERY)

    async def test_failed_camera_never_decodes(self):
        scanner = self.scanner(camera=FakeCamera(ok=False))

        report = await scanner.scan(Source.CAMERA)

        self.assertEqual(self.pipeline.calls, 0)
        self.assertEqual(self.surface.notices, ["please click an image"])
        self.assertEqual(self.surface.dialogs, [])
        self.assertEqual(report.state, CycleState.ACQUISITION_FAILED)
        self.assertEqual(report.error.reason, AcquisitionFailure.USER_CANCELLED_OR_NO_DATA)

    async def test_failed_gallery_never_decodes(self):
        scanner = self.scanner(gallery=FakeGallery(content=None))

        await scanner.scan(Source.GALLERY)

        self.assertEqual(self.pipeline.calls, 0)
        self.assertEqual(self.surface.notices, ["Please select an image"])

    async def test_unreadable_gallery_content_is_generic_error(self):
        scanner = self.scanner(gallery=FakeGallery(content=b"definitely not pixels"))

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual(report.error.reason, AcquisitionFailure.UNREADABLE_CONTENT)
        self.assertEqual(self.surface.notices, ["something went wrong"])
        self.assertEqual(self.pipeline.calls, 0)

    async def test_oversized_gallery_image_is_generic_error(self):
        scanner = self.scanner(gallery=FakeGallery(content=to_bytes(blank_image((100, 100)))))

        # Pillow refuses images more than twice this many pixels
        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            report = await scanner.scan(Source.GALLERY)

        self.assertEqual(report.error.reason, AcquisitionFailure.UNREADABLE_CONTENT)
        self.assertEqual(self.surface.notices, ["something went wrong"])
        self.assertEqual(self.pipeline.calls, 0)
        self.assertEqual(report.states[-1], CycleState.IDLE)
        self.assertEqual(len(self.events), 1)

    async def test_crashing_camera_still_ends_cycle(self):
        class BrokenCamera(FakeCamera):
            async def take_picture(self, destination):
                raise RuntimeError("device gone")

        scanner = self.scanner(camera=BrokenCamera())

        report = await scanner.scan(Source.CAMERA)

        self.assertEqual(report.state, CycleState.ACQUISITION_FAILED)
        self.assertEqual(report.error.reason, AcquisitionFailure.UNREADABLE_CONTENT)
        self.assertEqual(report.presentation, Presentation.ERROR)
        self.assertEqual(self.surface.notices, ["something went wrong"])
        self.assertEqual(self.events[0]["state"], "acquisition_failed")

    async def test_crashing_pipeline_still_ends_cycle(self):
        class BrokenPipeline(SpyPipeline):
            async def decode(self, image):
                raise MemoryError("out of memory")

        scanner = self.scanner(gallery=FakeGallery(content=to_bytes(blank_image())))
        scanner.pipeline = BrokenPipeline([OpenCvQrDecoder()])

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual(report.state, CycleState.DECODE_FAILED)
        self.assertEqual(self.surface.notices, ["something went wrong"])
        self.assertEqual(report.states[-1], CycleState.IDLE)
        self.assertEqual(len(self.events), 1)

    async def test_image_without_qr_is_not_found(self):
        scanner = self.scanner(gallery=FakeGallery(content=to_bytes(blank_image())))

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual(report.state, CycleState.NOT_FOUND)
        self.assertEqual(self.surface.notices, ["No QR code found in the Image"])
        self.assertEqual(self.surface.dialogs, [])

    async def test_decoder_failure_is_generic_error(self):
        scanner = self.scanner(
            gallery=FakeGallery(content=to_bytes(blank_image())),
            decoders=[StaticDecoder("broken", error=RuntimeError("model load failed"))],
        )

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual(report.state, CycleState.DECODE_FAILED)
        self.assertEqual(self.surface.notices, ["something went wrong"])

    async def test_only_first_code_is_presented(self):
        scanner = self.scanner(
            gallery=FakeGallery(content=to_bytes(blank_image())),
            decoders=[StaticDecoder("multi", [qr("A"), qr("B")])],
        )

        report = await scanner.scan(Source.GALLERY)

        self.assertEqual([body for _, body, _ in self.surface.dialogs], ["A"])
        self.assertEqual(len(report.payload), 2)

    async def test_superseded_cycle_does_not_present(self):
        release = asyncio.Event()

        class SlowGallery(FakeGallery):
            async def get_content(self, mime_filter):
                await release.wait()
                return await super().get_content(mime_filter)

        scanner = self.scanner(
            camera=FakeCamera(picture=to_bytes(qr_image("NEWER"))),
            gallery=SlowGallery(content=to_bytes(qr_image("OLDER"))),
        )

        older = asyncio.create_task(scanner.scan(Source.GALLERY))
        await asyncio.sleep(0)
        newer = await scanner.scan(Source.CAMERA)
        release.set()
        older_report = await older

        self.assertFalse(newer.discarded)
        self.assertTrue(older_report.discarded)
        self.assertIsNone(older_report.presentation)
        self.assertEqual([body for _, body, _ in self.surface.dialogs], ["NEWER"])
        self.assertEqual(older_report.states[-1], CycleState.IDLE)

    async def test_cycle_is_recorded(self):
        scanner = self.scanner(camera=FakeCamera(ok=False))

        report = await scanner.scan(Source.CAMERA)

        self.assertEqual(len(self.events), 1)
        event = self.events[0]
        self.assertEqual(event['cycle'], report.token)
        self.assertEqual(event['source'], "camera")
        self.assertEqual(event['state'], "acquisition_failed")
        self.assertEqual(event['presentation'], "click_image")
        self.assertEqual(event['result_count'], 0)


class CycleTrackerTestCase(unittest.TestCase):

    def test_only_latest_token_is_current(self):
        tracker = CycleTracker()
        first = tracker.begin()
        second = tracker.begin()

        self.assertLess(first, second)
        self.assertFalse(tracker.is_current(first))
        self.assertTrue(tracker.is_current(second))
