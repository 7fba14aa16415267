"""Run the qrsnap bot: one instance per data directory."""
import fcntl
import os
import sys

from qrsnap.config import config
from qrsnap.logging_setup import logger
from qrsnap.storage import private_dir
from qrsnap.telegram_bot import build_app


def acquire_lock():
    """Hold an exclusive lock on the data dir for the life of the process."""
    lock_fd = open(os.path.join(private_dir(), 'qrsnap.lock'), 'w')
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        lock_fd.close()
        logger.error(f"another qrsnap instance already uses {config.DATA_DIR}")
        sys.exit(1)
    lock_fd.write(str(os.getpid()))
    lock_fd.flush()
    return lock_fd


def run(app) -> None:
    if os.getenv("MODE", "polling").lower() != "webhook":
        app.run_polling()
        return
    url = os.getenv("WEBHOOK_URL")
    if not url:
        raise RuntimeError("WEBHOOK_URL not set")
    path = os.getenv("WEBHOOK_PATH", "tg")
    app.run_webhook(
        listen="0.0.0.0",
        port=int(os.getenv("PORT", "8080")),
        url_path=path,
        webhook_url=f"{url}/{path}",
    )


if __name__ == "__main__":
    lock = acquire_lock()
    run(build_app())
