"""
Tests for turning camera captures and gallery picks into image handles.
"""
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from qrsnap.acquirer import ImageAcquirer
from qrsnap.errors import AcquisitionFailed, AcquisitionFailure
from qrsnap.models import CameraRequest, ContentRef, GalleryRequest, Source

from fakes import FakeCamera, FakeGallery
from qr_images import blank_image, to_bytes


def exif_jpeg(orientation: int) -> bytes:
    exif = Image.Exif()
    exif[0x0112] = orientation
    return to_bytes(Image.new("RGB", (40, 20), "white"), "JPEG", exif=exif.tobytes())


class ImageAcquirerTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.destination = Path(self.tmp.name) / "private" / "qrcode.jpg"

    def tearDown(self):
        self.tmp.cleanup()

    def acquirer(self, camera=None, gallery=None) -> ImageAcquirer:
        return ImageAcquirer(camera or FakeCamera(), gallery or FakeGallery(), destination=self.destination)

    async def test_camera_capture_reads_destination_without_rotation(self):
        camera = FakeCamera(picture=exif_jpeg(6))

        handle = await self.acquirer(camera=camera).request_camera_capture()

        self.assertEqual(camera.destinations, [self.destination])
        self.assertEqual(handle.rotation, 0)
        self.assertEqual(handle.source, Source.CAMERA)
        self.assertEqual(handle.image.size, (40, 20))

    async def test_camera_destination_is_overwritten(self):
        acquirer = self.acquirer(camera=FakeCamera(picture=to_bytes(blank_image((10, 10)))))
        await acquirer.request_camera_capture()
        acquirer.camera = FakeCamera(picture=to_bytes(blank_image((30, 30))))

        handle = await acquirer.request_camera_capture()

        self.assertEqual(handle.image.size, (30, 30))
        self.assertEqual(len(list(self.destination.parent.iterdir())), 1)

    async def test_camera_failure_is_user_cancelled(self):
        with self.assertRaises(AcquisitionFailed) as ctx:
            await self.acquirer(camera=FakeCamera(ok=False)).request_camera_capture()
        self.assertEqual(ctx.exception.reason, AcquisitionFailure.USER_CANCELLED_OR_NO_DATA)

    async def test_camera_garbage_file_is_unreadable(self):
        with self.assertRaises(AcquisitionFailed) as ctx:
            await self.acquirer(camera=FakeCamera(picture=b"not an image")).request_camera_capture()
        self.assertEqual(ctx.exception.reason, AcquisitionFailure.UNREADABLE_CONTENT)

    async def test_gallery_selection_uses_filter_and_exif_rotation(self):
        gallery = FakeGallery(content=exif_jpeg(6), mime_type="image/jpeg")

        handle = await self.acquirer(gallery=gallery).request_gallery_selection("image/*")

        self.assertEqual(gallery.filters, ["image/*"])
        self.assertEqual(handle.rotation, 90)
        self.assertEqual(handle.source, Source.GALLERY)
        self.assertFalse(self.destination.exists())

    async def test_gallery_without_exif_has_no_rotation(self):
        gallery = FakeGallery(content=to_bytes(blank_image()))

        handle = await self.acquirer(gallery=gallery).request_gallery_selection()

        self.assertEqual(handle.rotation, 0)

    async def test_gallery_nothing_picked_is_no_selection(self):
        with self.assertRaises(AcquisitionFailed) as ctx:
            await self.acquirer(gallery=FakeGallery(content=None)).request_gallery_selection()
        self.assertEqual(ctx.exception.reason, AcquisitionFailure.NO_SELECTION)

    async def test_gallery_garbage_content_is_unreadable(self):
        with self.assertRaises(AcquisitionFailed) as ctx:
            await self.acquirer(gallery=FakeGallery(content=b"%PDF-1.4")).request_gallery_selection()
        self.assertEqual(ctx.exception.reason, AcquisitionFailure.UNREADABLE_CONTENT)

    async def test_gallery_failing_loader_is_unreadable(self):
        class BrokenGallery(FakeGallery):
            async def get_content(self, mime_filter):
                async def load():
                    raise ConnectionError("download failed")
                return ContentRef(uri="test://x", mime_type="image/png", loader=load)

        with self.assertRaises(AcquisitionFailed) as ctx:
            await self.acquirer(gallery=BrokenGallery()).request_gallery_selection()
        self.assertEqual(ctx.exception.reason, AcquisitionFailure.UNREADABLE_CONTENT)

    async def test_acquire_dispatches_on_request_kind(self):
        acquirer = self.acquirer(
            camera=FakeCamera(picture=to_bytes(blank_image())),
            gallery=FakeGallery(content=to_bytes(blank_image())),
        )

        camera_handle = await acquirer.acquire(CameraRequest(self.destination))
        gallery_handle = await acquirer.acquire(GalleryRequest("image/png"))

        self.assertEqual(camera_handle.source, Source.CAMERA)
        self.assertEqual(gallery_handle.source, Source.GALLERY)
        self.assertEqual(acquirer.gallery.filters, ["image/png"])

    async def test_acquire_rejects_unknown_request(self):
        with self.assertRaises(TypeError):
            await self.acquirer().acquire("camera")
