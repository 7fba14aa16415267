"""Chat messages standing in for the notice toast and the modal dialog."""
from __future__ import annotations
import logging
import os

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import MessageLimit, ParseMode

from qrsnap.capabilities import DialogSurface, NotificationSurface
from qrsnap.config import config
from qrsnap.message_sender import MessageSender
from qrsnap.renderers.dialog_renderer import DialogRenderer

logger = logging.getLogger("qrsnap.telegram_surfaces")

DISMISS_CALLBACK = "dismiss"
TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "..", "templates")
RESULT_FILENAME = "qr_result.txt"


def text_length(text: str) -> int:
    """Length as Telegram counts it, in UTF-16 code units."""
    return len(text.encode("utf-16-le")) // 2


class TelegramNotifier(NotificationSurface):
    def __init__(self, sender: MessageSender, chat_id: int):
        self.sender = sender
        self.chat_id = chat_id

    async def notify(self, text: str) -> None:
        await self.sender.send_message_ret(self.chat_id, text)


class TelegramDialog(DialogSurface):
    """An HTML message with a single button that deletes it.

    Bodies too long for one message go out as a text file with the title
    as caption. If neither gets through, the chat gets the generic notice.
    """

    def __init__(self, sender: MessageSender, chat_id: int, renderer: DialogRenderer):
        self.sender = sender
        self.chat_id = chat_id
        self.renderer = renderer

    async def show_dialog(self, title: str, body: str, dismiss_label: str) -> None:
        html = self.renderer.render_dialog_html(title, body)
        kb = InlineKeyboardMarkup([[InlineKeyboardButton(dismiss_label, callback_data=DISMISS_CALLBACK)]])
        if text_length(html) > MessageLimit.MAX_TEXT_LENGTH:
            logger.info(f"show_dialog: {text_length(html)} chars, sending as {RESULT_FILENAME}")
            sent = await self.sender.send_document_ret(
                self.chat_id, body.encode("utf-8"), RESULT_FILENAME, caption=title, reply_markup=kb
            )
        else:
            sent = await self.sender.send_message_ret(self.chat_id, html, parse_mode=ParseMode.HTML, reply_markup=kb)
        if sent is None:
            logger.error(f"show_dialog: result not delivered to chat {self.chat_id}")
            await self.sender.send_message_ret(self.chat_id, config.NOTICE_GENERIC_ERROR)
