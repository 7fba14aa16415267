"""Private on-disk storage owned by the bot process."""
from __future__ import annotations
import os
from pathlib import Path
from typing import Optional

from qrsnap.config import config


def private_dir(base: Optional[str] = None) -> Path:
    path = Path(base or config.DATA_DIR)
    path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(path, 0o700)
    except OSError:
        pass
    return path


def captured_image_path(base: Optional[str] = None) -> Path:
    """Destination the camera writes to. Reused, and overwritten on every capture."""
    return private_dir(base) / config.CAPTURED_IMAGE_NAME
