from __future__ import annotations
from typing import List, Optional, Sequence, Tuple, Dict, Any
from time import perf_counter
import asyncio
import logging
from PIL import Image
from qrsnap.models import Barcode, DecodedPayload, ImageHandle
from qrsnap.decoders.base import Decoder
from qrsnap.errors import DecodeError, InvariantViolation

logger = logging.getLogger("qrsnap.pipeline")


def upright(handle: ImageHandle) -> Image.Image:
    """Return the handle's pixels rotated by its rotation value."""
    image = handle.image.convert("RGB")
    if handle.rotation % 360:
        # PIL rotates counter-clockwise; rotation is the clockwise correction
        image = image.rotate(-handle.rotation, expand=True)
    return image


class DecoderPipeline:
    def __init__(self, decoders: Sequence[Decoder]):
        if not decoders:
            raise ValueError("DecoderPipeline needs at least one decoder")
        self.decoders = list(decoders)

    def run_debug(self, image: Image.Image) -> tuple[List[Barcode], list[Dict[str, Any]]]:
        timeline: list[Dict[str, Any]] = []
        results: List[Barcode] = []
        seen: set[Tuple[str, str]] = set()
        for d in self.decoders:
            t0 = perf_counter()
            count = 0
            error = None
            try:
                out = d.decode(image)
                for b in out:
                    key = (b.symbology, b.data)
                    if key in seen:
                        continue
                    seen.add(key)
                    results.append(b)
                    count += 1
            except Exception as e:
                error = repr(e)
                logger.warning(f"decoder {d.name} failed: {error}")
            dt = int((perf_counter() - t0) * 1000)
            timeline.append({
                'decoder': getattr(d, 'name', d.__class__.__name__),
                'count': count,
                'ms': dt,
                'error': error,
            })
        return results, timeline

    async def decode(self, image: Optional[ImageHandle]) -> DecodedPayload:
        """Decode QR codes from an acquired image on a worker thread.

        Raises InvariantViolation when called without an image and
        DecodeError when every decoder failed.
        """
        if image is None:
            raise InvariantViolation("decode() called without an image")

        def work() -> tuple[List[Barcode], list[Dict[str, Any]]]:
            return self.run_debug(upright(image))

        try:
            results, timeline = await asyncio.to_thread(work)
        except Exception as e:
            raise DecodeError(f"image could not be prepared for decoding: {e!r}") from e

        if all(t['error'] for t in timeline):
            raise DecodeError("; ".join(f"{t['decoder']}: {t['error']}" for t in timeline))

        logger.info(f"decode: {len(results)} code(s), timeline={timeline}")
        return DecodedPayload(barcodes=tuple(results), timeline=timeline)
