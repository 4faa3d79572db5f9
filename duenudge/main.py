"""Main entry point for DueNudge."""

import logging
import sys

from telegram.ext import Application, CommandHandler, ContextTypes

from duenudge.bot.handlers import (
    checkins_command,
    dismiss_command,
    energy_command,
    frequency_command,
    help_command,
    leadtime_command,
    mute_command,
    pending_command,
    quiet_command,
    settings_command,
    start_command,
    summary_command,
    timezone_command,
    unmute_command,
    workhours_command,
)
from duenudge.config import Config
from duenudge.db.migrations import run_migrations
from duenudge.db.repository import Repository
from duenudge.delivery.telegram_sink import TelegramSink
from duenudge.engine.dispatcher import Dispatcher
from duenudge.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


async def sweep_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the hourly sweep."""
    dispatcher: Dispatcher = context.bot_data["dispatcher"]
    try:
        await dispatcher.sweep()
    except Exception as e:
        logger.error(f"Sweep error: {e}")


async def post_init(application: Application) -> None:
    """Initialize resources after application is created."""
    await run_migrations(Config.DATABASE_PATH)

    repo = Repository(Config.DATABASE_PATH, default_timezone=Config.DEFAULT_TIMEZONE)
    await repo.connect()
    application.bot_data["repo"] = repo

    job_queue = application.job_queue
    if job_queue is None:
        raise RuntimeError("python-telegram-bot[job-queue] is required for delivery")

    sink = TelegramSink(job_queue, int(Config.TELEGRAM_CHAT_ID))
    application.bot_data["sink"] = sink

    dispatcher = Dispatcher(
        sink=sink, state=repo, tasks=repo, profiles=repo, preferences=repo
    )
    application.bot_data["dispatcher"] = dispatcher

    # Task writes cancel or replace reminders right away
    repo.add_task_listener(dispatcher)

    # Timers did not survive the restart
    await dispatcher.startup_recovery()

    job_queue.run_repeating(
        sweep_job,
        interval=Config.SWEEP_INTERVAL,
        first=10,  # Start after 10 seconds
        name="sweep",
    )
    logger.info(f"Sweep job scheduled (interval: {Config.SWEEP_INTERVAL}s)")

    logger.info("DueNudge initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: Repository = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("DueNudge shut down")


def main() -> None:
    """Start the bot."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Commands
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("pending", pending_command))
    application.add_handler(CommandHandler("summary", summary_command))
    application.add_handler(CommandHandler("dismiss", dismiss_command))

    # Settings commands
    application.add_handler(CommandHandler("settings", settings_command))
    application.add_handler(CommandHandler("quiet", quiet_command))
    application.add_handler(CommandHandler("frequency", frequency_command))
    application.add_handler(CommandHandler("mute", mute_command))
    application.add_handler(CommandHandler("unmute", unmute_command))
    application.add_handler(CommandHandler("leadtime", leadtime_command))

    # Profile commands
    application.add_handler(CommandHandler("timezone", timezone_command))
    application.add_handler(CommandHandler("workhours", workhours_command))
    application.add_handler(CommandHandler("energy", energy_command))
    application.add_handler(CommandHandler("checkins", checkins_command))

    # Error handler
    application.add_error_handler(error_handler)

    logger.info("Starting DueNudge bot...")
    application.run_polling(allowed_updates=["message"])


if __name__ == "__main__":
    main()
