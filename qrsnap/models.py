from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Tuple, Union
from PIL import Image

# Only the first decoded code is ever shown.
RESULTS_CONSUMED = 1


class Source(str, Enum):
    CAMERA = "camera"
    GALLERY = "gallery"


@dataclass(frozen=True)
class Barcode:
    symbology: str
    data: str
    source: str


@dataclass(frozen=True)
class ImageHandle:
    image: Image.Image
    rotation: int = 0
    source: Source = Source.CAMERA


@dataclass(frozen=True)
class DecodedPayload:
    barcodes: Tuple[Barcode, ...] = ()
    timeline: List[Dict[str, Any]] = field(default_factory=list, compare=False)

    def __len__(self) -> int:
        return len(self.barcodes)

    def __bool__(self) -> bool:
        return bool(self.barcodes)

    def consumed(self) -> Tuple[Barcode, ...]:
        return self.barcodes[:RESULTS_CONSUMED]


@dataclass(frozen=True)
class CameraRequest:
    destination: Path


@dataclass(frozen=True)
class GalleryRequest:
    mime_filter: str = "image/*"


AcquisitionRequest = Union[CameraRequest, GalleryRequest]


@dataclass(frozen=True)
class ContentRef:
    """A picked file: where it came from, its MIME type and how to read it."""
    uri: str
    mime_type: str
    loader: Callable[[], Awaitable[bytes]] = field(compare=False, repr=False)

    async def read(self) -> bytes:
        return await self.loader()
