"""Configuration constants for the QR bot."""
import os
from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class BotConfig:
    """Bot configuration with all magic numbers and user-facing strings."""

    # Private storage
    DATA_DIR: Final[str] = os.getenv(
        "QRSNAP_DATA_DIR",
        os.path.join(os.path.dirname(os.path.dirname(__file__)), "data"),
    )
    CAPTURED_IMAGE_NAME: Final[str] = "qrcode.jpg"
    GALLERY_MIME_FILTER: Final[str] = "image/*"

    # Dialog
    DIALOG_TITLE: Final[str] = "QR code result:"
    DIALOG_DISMISS_LABEL: Final[str] = "ok"

    # Notices
    NOTICE_NOT_FOUND: Final[str] = "No QR code found in the Image"
    NOTICE_CLICK_IMAGE: Final[str] = "please click an image"
    NOTICE_SELECT_IMAGE: Final[str] = "Please select an image"
    NOTICE_GENERIC_ERROR: Final[str] = "something went wrong"

    # Retry settings (outgoing chat messages only)
    MAX_RETRIES: Final[int] = 3
    RETRY_DELAY_BASE: Final[float] = 0.5

    # API timeouts
    TELEGRAM_CONNECT_TIMEOUT: Final[float] = 10.0
    TELEGRAM_READ_TIMEOUT: Final[float] = 20.0
    TELEGRAM_WRITE_TIMEOUT: Final[float] = 20.0
    TELEGRAM_POOL_TIMEOUT: Final[float] = 30.0
    TELEGRAM_MEDIA_WRITE_TIMEOUT: Final[float] = 30.0

    # Connection pool
    CONNECTION_POOL_SIZE: Final[int] = 20

    # Largest image accepted from chat
    MAX_IMAGE_MB: Final[int] = 20

    def get_retry_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay for retry attempt."""
        return self.RETRY_DELAY_BASE * (2 ** attempt)


# Global config instance
config = BotConfig()
