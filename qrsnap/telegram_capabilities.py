"""Camera and gallery backed by the user's next chat message."""
from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

from telegram import Document, PhotoSize
from telegram.error import TelegramError

from qrsnap.capabilities import CameraCapability, GalleryCapability, mime_matches
from qrsnap.config import config
from qrsnap.models import ContentRef

logger = logging.getLogger("qrsnap.telegram_capabilities")

T = TypeVar("T")


class Inbox(Generic[T]):
    """Hands the next delivered item to whoever is waiting for it.

    Items delivered before anyone waits are queued for the next waits.
    A new wait releases the previous one with None.
    """

    def __init__(self):
        self._waiter: Optional[asyncio.Future] = None
        self._ready: Deque[Optional[T]] = deque()

    @property
    def pending(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    def wait(self) -> "asyncio.Future[Optional[T]]":
        self.release()
        waiter = asyncio.get_running_loop().create_future()
        if self._ready:
            waiter.set_result(self._ready.popleft())
        self._waiter = waiter
        return waiter

    def deliver(self, item: T) -> bool:
        """Resolve the pending wait. Returns False when the item was queued instead."""
        if self.pending:
            self._waiter.set_result(item)
            return True
        self._ready.append(item)
        return False

    def release(self) -> bool:
        """Resolve the pending wait with None. Returns True when there was one."""
        if self.pending:
            self._waiter.set_result(None)
            return True
        return False

    def clear(self) -> bool:
        """Drop queued items and release the pending wait.

        Each dropped item leaves a None behind for the wait that was coming
        for it. Returns True when anything was dropped or released.
        """
        dropped = sum(item is not None for item in self._ready)
        self._ready = deque([None] * len(self._ready))
        released = self.release()
        return released or dropped > 0


class TelegramCamera(CameraCapability):
    """The picture is the next photo sent to the chat."""

    def __init__(self, max_image_mb: int = config.MAX_IMAGE_MB):
        self.inbox: Inbox[PhotoSize] = Inbox()
        self.max_bytes = max_image_mb * 1024 * 1024

    async def take_picture(self, destination: Path) -> bool:
        photo = await self.inbox.wait()
        if photo is None:
            return False
        if photo.file_size and photo.file_size > self.max_bytes:
            logger.warning(f"take_picture: photo too large ({photo.file_size} bytes)")
            return False
        try:
            tg_file = await photo.get_file()
            await tg_file.download_to_drive(custom_path=destination)
        except (TelegramError, OSError) as e:
            logger.warning(f"take_picture: could not write {destination}: {e}")
            return False
        return destination.exists() and destination.stat().st_size > 0


class TelegramGallery(GalleryCapability):
    """The picked file is the next document sent to the chat."""

    def __init__(self, max_image_mb: int = config.MAX_IMAGE_MB):
        self.inbox: Inbox[Document] = Inbox()
        self.max_bytes = max_image_mb * 1024 * 1024

    async def get_content(self, mime_filter: str) -> Optional[ContentRef]:
        doc = await self.inbox.wait()
        if doc is None:
            return None
        if not mime_matches(doc.mime_type, mime_filter):
            logger.info(f"get_content: {doc.mime_type!r} does not match {mime_filter!r}")
            return None
        if doc.file_size and doc.file_size > self.max_bytes:
            logger.warning(f"get_content: document too large ({doc.file_size} bytes)")
            return None

        async def load() -> bytes:
            tg_file = await doc.get_file()
            return bytes(await tg_file.download_as_bytearray())

        return ContentRef(
            uri=f"tg://document/{doc.file_unique_id}",
            mime_type=doc.mime_type,
            loader=load,
        )
