from __future__ import annotations
import platform
import os

from qrsnap.config import config


def system_info() -> str:
    parts = []
    parts.append(f"python: {platform.python_version()}")
    parts.append(f"platform: {platform.platform()}")
    parts.append(f"LOG_LEVEL: {os.getenv('LOG_LEVEL','INFO')}")
    parts.append(f"data dir: {config.DATA_DIR}")
    try:
        import cv2
        parts.append(f"opencv: {cv2.__version__}")
    except ImportError:
        parts.append("opencv: not available")
    try:
        import pyzbar
        from pyzbar import zbar_library
        zbar_library.load()
        parts.append(f"pyzbar: {getattr(pyzbar, '__version__', 'available')}")
    except (ImportError, OSError):
        parts.append("pyzbar: not available")
    try:
        import PIL
        parts.append(f"pillow: {PIL.__version__}")
    except ImportError:
        parts.append("pillow: not available")
    return "\n".join(parts)
