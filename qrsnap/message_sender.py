"""Message sender with retry logic for Telegram bot."""
import asyncio
from typing import Optional

from telegram import Bot, Message
from telegram.error import BadRequest, TelegramError

from qrsnap.config import config
from qrsnap.logging_setup import logger


class MessageSender:
    """Handles sending messages with automatic retry logic."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def _with_retries(self, label: str, send, max_retries: Optional[int]) -> Optional[Message]:
        if max_retries is None:
            max_retries = config.MAX_RETRIES

        for attempt in range(max_retries):
            try:
                return await send()
            except BadRequest as e:
                # Same request would be rejected again
                logger.error(f"MessageSender.{label}: rejected: {e}")
                return None
            except TelegramError as e:
                if attempt < max_retries - 1:
                    wait_time = config.get_retry_delay(attempt)
                    logger.warning(
                        f"MessageSender.{label}: retry {attempt+1}/{max_retries} "
                        f"in {wait_time}s: {e}"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"MessageSender.{label}: failed after retries: {e}")
                    return None
        return None

    async def send_message_ret(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup=None,
        max_retries: Optional[int] = None
    ) -> Optional[Message]:
        """
        Send message with retry logic and return Message object.

        Args:
            chat_id: Chat ID to send to
            text: Message text
            parse_mode: Parse mode (HTML, Markdown, etc.)
            reply_markup: Reply markup
            max_retries: Maximum retries (default: config.MAX_RETRIES)

        Returns:
            Message object if successful, None otherwise
        """
        return await self._with_retries(
            "send_message_ret",
            lambda: self.bot.send_message(
                chat_id,
                text,
                parse_mode=parse_mode,
                reply_markup=reply_markup
            ),
            max_retries,
        )

    async def send_document_ret(
        self,
        chat_id: int,
        document: bytes,
        filename: str,
        caption: Optional[str] = None,
        reply_markup=None,
        max_retries: Optional[int] = None
    ) -> Optional[Message]:
        """Send bytes as a file attachment. Same retry rules as send_message_ret."""
        return await self._with_retries(
            "send_document_ret",
            lambda: self.bot.send_document(
                chat_id,
                document,
                filename=filename,
                caption=caption,
                reply_markup=reply_markup
            ),
            max_retries,
        )
