"""Contracts of the outside services an acquisition cycle talks to."""
from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from qrsnap.models import ContentRef


class CameraCapability(ABC):
    @abstractmethod
    async def take_picture(self, destination: Path) -> bool:
        """Write one picture to destination. False when cancelled or nothing was written."""
        ...


class GalleryCapability(ABC):
    @abstractmethod
    async def get_content(self, mime_filter: str) -> Optional[ContentRef]:
        """Let the user pick a file matching mime_filter. None when nothing was picked."""
        ...


class NotificationSurface(ABC):
    @abstractmethod
    async def notify(self, text: str) -> None:
        ...


class DialogSurface(ABC):
    @abstractmethod
    async def show_dialog(self, title: str, body: str, dismiss_label: str) -> None:
        ...


def mime_matches(mime_type: Optional[str], mime_filter: str) -> bool:
    """Match a MIME type against a filter such as "image/*" or "image/png"."""
    if not mime_type:
        return False
    if mime_filter in ("*", "*/*"):
        return True
    kind, _, sub = mime_filter.lower().partition("/")
    m_kind, _, m_sub = mime_type.lower().partition("/")
    if kind != m_kind:
        return False
    return sub in ("*", "") or sub == m_sub
