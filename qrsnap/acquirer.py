"""Turn camera captures and gallery picks into ImageHandles."""
from __future__ import annotations
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from qrsnap.capabilities import CameraCapability, GalleryCapability
from qrsnap.config import config
from qrsnap.errors import AcquisitionFailed, AcquisitionFailure
from qrsnap.models import (
    AcquisitionRequest,
    CameraRequest,
    GalleryRequest,
    ImageHandle,
    Source,
)
from qrsnap.storage import captured_image_path

logger = logging.getLogger("qrsnap.acquirer")

EXIF_ORIENTATION_TAG = 0x0112
# EXIF orientation -> clockwise degrees needed to stand the picture up
EXIF_ROTATION = {3: 180, 6: 90, 8: 270}


def exif_rotation(image: Image.Image) -> int:
    try:
        orientation = image.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except Exception as e:
        logger.debug(f"exif_rotation: unreadable EXIF: {e!r}")
        return 0
    return EXIF_ROTATION.get(orientation, 0)


# Pillow load failures: bad data, truncated files, oversized images
IMAGE_LOAD_ERRORS = (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError)


def _open_image(fp) -> Image.Image:
    image = Image.open(fp)
    image.load()
    return image


class ImageAcquirer:
    def __init__(
        self,
        camera: CameraCapability,
        gallery: GalleryCapability,
        destination: Optional[Path] = None,
    ):
        self.camera = camera
        self.gallery = gallery
        self._destination = destination

    @property
    def destination(self) -> Path:
        if self._destination is None:
            self._destination = captured_image_path()
        return self._destination

    async def acquire(self, request: AcquisitionRequest) -> ImageHandle:
        if isinstance(request, CameraRequest):
            return await self.request_camera_capture(request.destination)
        if isinstance(request, GalleryRequest):
            return await self.request_gallery_selection(request.mime_filter)
        raise TypeError(f"unknown acquisition request: {request!r}")

    async def request_camera_capture(self, destination: Optional[Path] = None) -> ImageHandle:
        destination = destination or self.destination
        destination.parent.mkdir(parents=True, exist_ok=True)
        ok = await self.camera.take_picture(destination)
        logger.debug(f"request_camera_capture: ok={ok}")
        if not ok:
            raise AcquisitionFailed(AcquisitionFailure.USER_CANCELLED_OR_NO_DATA)
        try:
            image = _open_image(destination)
        except IMAGE_LOAD_ERRORS as e:
            raise AcquisitionFailed(AcquisitionFailure.UNREADABLE_CONTENT, repr(e)) from e
        # No orientation correction for captured pictures.
        return ImageHandle(image=image, rotation=0, source=Source.CAMERA)

    async def request_gallery_selection(self, mime_filter: str = config.GALLERY_MIME_FILTER) -> ImageHandle:
        ref = await self.gallery.get_content(mime_filter)
        if ref is None:
            raise AcquisitionFailed(AcquisitionFailure.NO_SELECTION)
        logger.debug(f"gallery selection: {ref.uri} ({ref.mime_type})")
        try:
            raw = await ref.read()
        except Exception as e:
            raise AcquisitionFailed(AcquisitionFailure.UNREADABLE_CONTENT, repr(e)) from e
        try:
            image = _open_image(BytesIO(raw))
        except IMAGE_LOAD_ERRORS as e:
            raise AcquisitionFailed(AcquisitionFailure.UNREADABLE_CONTENT, repr(e)) from e
        return ImageHandle(image=image, rotation=exif_rotation(image), source=Source.GALLERY)
