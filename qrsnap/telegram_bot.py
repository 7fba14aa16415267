import os
from dotenv import load_dotenv
from telegram import Update, InlineKeyboardMarkup, InlineKeyboardButton
from telegram.constants import ParseMode
from telegram.ext import Application, CommandHandler, MessageHandler, CallbackQueryHandler, ContextTypes, filters
from telegram.error import TelegramError
from telegram.request import HTTPXRequest

from qrsnap.acquirer import ImageAcquirer
from qrsnap.config import config
from qrsnap.cycle import CycleReport, Scanner
from qrsnap.decoders.zbar_decoder import ZBarDecoder
from qrsnap.decoders.cv_qr_decoder import OpenCvQrDecoder
from qrsnap.diagnostics import system_info
from qrsnap.logging_setup import logger
from qrsnap.message_sender import MessageSender
from qrsnap.metrics import append_event, summarize
from qrsnap.models import Source
from qrsnap.pipeline import DecoderPipeline
from qrsnap.presenter import ResultPresenter
from qrsnap.renderers.dialog_renderer import DialogRenderer
from qrsnap.storage import captured_image_path
from qrsnap.telegram_capabilities import TelegramCamera, TelegramGallery
from qrsnap.telegram_surfaces import DISMISS_CALLBACK, TEMPLATES_DIR, TelegramDialog, TelegramNotifier

load_dotenv()
BOT_TOKEN = os.getenv("BOT_TOKEN") or os.getenv("TELEGRAM_BOT_TOKEN")

pipeline = DecoderPipeline([ZBarDecoder(), OpenCvQrDecoder()])
renderer = DialogRenderer(templates_dir=TEMPLATES_DIR)

DEBUG_DEFAULT = os.getenv("DEBUG", "0") in ("1", "true", "True")
DEBUG_CHATS: set[int] = set()

ACQUIRE_CALLBACK = "acquire:"
SOURCE_KEYBOARD = InlineKeyboardMarkup([[
    InlineKeyboardButton("📷 Camera", callback_data=f"{ACQUIRE_CALLBACK}{Source.CAMERA.value}"),
    InlineKeyboardButton("🖼 Gallery", callback_data=f"{ACQUIRE_CALLBACK}{Source.GALLERY.value}"),
]])
PROMPTS = {
    Source.CAMERA: "Take a photo of the QR code and send it.",
    Source.GALLERY: "Send the image as a file (📎 → File).",
}


class ChatSession:
    """Per-chat camera, gallery and scanner. Stored in context.chat_data."""

    def __init__(self, bot, chat_id: int):
        self.chat_id = chat_id
        self.sender = MessageSender(bot)
        self.camera = TelegramCamera()
        self.gallery = TelegramGallery()
        self.scanner = Scanner(
            acquirer=ImageAcquirer(self.camera, self.gallery, destination=captured_image_path()),
            pipeline=pipeline,
            presenter=ResultPresenter(
                notices=TelegramNotifier(self.sender, chat_id),
                dialogs=TelegramDialog(self.sender, chat_id, renderer),
            ),
            record=record_cycle,
        )

    def release_waits(self) -> None:
        self.camera.inbox.release()
        self.gallery.inbox.release()


def record_cycle(event: dict) -> None:
    try:
        append_event(event)
    except OSError as e:
        logger.warning(f"record_cycle: metrics not written: {e}")


def get_session(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> ChatSession:
    session = context.chat_data.get("session")
    if session is None:
        session = ChatSession(context.bot, chat_id)
        context.chat_data["session"] = session
    return session


async def run_cycle(session: ChatSession, source: Source, token: int) -> None:
    try:
        report = await session.scanner.scan(source, token=token)
        logger.info(
            f"run_cycle: chat={session.chat_id} cycle={report.token} source={source.value} "
            f"state={report.state.value} discarded={report.discarded}"
        )
        if (DEBUG_DEFAULT or session.chat_id in DEBUG_CHATS) and not report.discarded:
            await send_timeline(session, report)
    except Exception as e:
        logger.error(f"run_cycle: error: {e}", exc_info=True)
        await session.sender.send_message_ret(session.chat_id, config.NOTICE_GENERIC_ERROR)


async def send_timeline(session: ChatSession, report: CycleReport) -> None:
    if report.payload is None or not report.payload.timeline:
        return
    lines = [f"{t['decoder']}: {t['count']} in {t['ms']}ms" for t in report.payload.timeline]
    await session.sender.send_message_ret(
        session.chat_id, "<code>" + " | ".join(lines) + "</code>", parse_mode=ParseMode.HTML
    )


def start_cycle(context: ContextTypes.DEFAULT_TYPE, session: ChatSession, source: Source) -> None:
    # Claim the token first so released older cycles see themselves superseded
    token = session.scanner.tracker.begin()
    session.release_waits()
    context.application.create_task(run_cycle(session, source, token))


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(
        "Scan a QR code: take a picture or pick an image.", reply_markup=SOURCE_KEYBOARD
    )


async def ping(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text("pong")


async def debug_on(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    DEBUG_CHATS.add(update.effective_chat.id)
    await update.message.reply_text("debug: ON")


async def debug_off(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    DEBUG_CHATS.discard(update.effective_chat.id)
    await update.message.reply_text("debug: OFF")


async def diag(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(system_info())


async def stats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    s = summarize(500)
    text = f"total={s['total']}, ok={s['ok']}, empty={s['empty']}, per_state={s['per_state']}, per_decoder={s['per_decoder_hits']}"
    await update.message.reply_text(text)


async def camera(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    session = get_session(context, update.effective_chat.id)
    start_cycle(context, session, Source.CAMERA)
    await update.message.reply_text(PROMPTS[Source.CAMERA])


async def gallery(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    session = get_session(context, update.effective_chat.id)
    start_cycle(context, session, Source.GALLERY)
    await update.message.reply_text(PROMPTS[Source.GALLERY])


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    session = get_session(context, update.effective_chat.id)
    cancelled = session.camera.inbox.clear() | session.gallery.inbox.clear()
    if not cancelled:
        await update.message.reply_text("Nothing to cancel.")


async def on_acquire(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()
    try:
        source = Source((query.data or "")[len(ACQUIRE_CALLBACK):])
    except ValueError:
        logger.warning(f"on_acquire: unknown source in {query.data!r}")
        return
    session = get_session(context, update.effective_chat.id)
    start_cycle(context, session, source)
    await session.sender.send_message_ret(session.chat_id, PROMPTS[source])


async def on_dismiss(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()
    try:
        await query.message.delete()
    except TelegramError as e:
        logger.debug(f"on_dismiss: failed to delete dialog: {e}")


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.photo:
        logger.warning("handle_photo: no message or photo")
        return
    session = get_session(context, update.effective_chat.id)
    largest = update.message.photo[-1]
    logger.info(f"handle_photo: chat={session.chat_id}, file_id={largest.file_id[:20]}...")
    if not session.camera.inbox.deliver(largest):
        # Photo sent without pressing Camera first
        start_cycle(context, session, Source.CAMERA)


async def handle_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.document:
        logger.warning("handle_document: no message or document")
        return
    session = get_session(context, update.effective_chat.id)
    doc = update.message.document
    logger.info(f"handle_document: chat={session.chat_id}, mime={doc.mime_type}, name={doc.file_name}")
    if not session.gallery.inbox.deliver(doc):
        start_cycle(context, session, Source.GALLERY)


def build_app() -> Application:
    token = BOT_TOKEN
    if not token:
        raise RuntimeError("BOT_TOKEN not set in environment (.env)")
    request = HTTPXRequest(
        connection_pool_size=config.CONNECTION_POOL_SIZE,
        connect_timeout=config.TELEGRAM_CONNECT_TIMEOUT,
        read_timeout=config.TELEGRAM_READ_TIMEOUT,
        write_timeout=config.TELEGRAM_WRITE_TIMEOUT,
        pool_timeout=config.TELEGRAM_POOL_TIMEOUT,
        media_write_timeout=config.TELEGRAM_MEDIA_WRITE_TIMEOUT,
    )
    app = Application.builder().token(token).request(request).build()
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("camera", camera))
    app.add_handler(CommandHandler("gallery", gallery))
    app.add_handler(CommandHandler("cancel", cancel))
    app.add_handler(CommandHandler("ping", ping))
    app.add_handler(CommandHandler("debug_on", debug_on))
    app.add_handler(CommandHandler("debug_off", debug_off))
    app.add_handler(CommandHandler("diag", diag))
    app.add_handler(CommandHandler("stats", stats))
    app.add_handler(MessageHandler(filters.PHOTO, handle_photo))
    app.add_handler(MessageHandler(filters.Document.ALL, handle_document))
    app.add_handler(CallbackQueryHandler(on_acquire, pattern=rf"^{ACQUIRE_CALLBACK}"))
    app.add_handler(CallbackQueryHandler(on_dismiss, pattern=rf"^{DISMISS_CALLBACK}$"))
    return app
