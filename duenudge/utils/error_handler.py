"""Global error handler for the bot."""

import logging
import sqlite3
import traceback

from telegram import Update
from telegram.error import BadRequest, TimedOut
from telegram.ext import ContextTypes

from duenudge.delivery.sink import DeliveryError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    "😅 Oops! Something went wrong.\n\n"
    "Your reminders are unaffected. Please try again or use /help."
)


def user_message_for(error: BaseException | None) -> str:
    """Pick the reply shown to the user for an exception."""
    if isinstance(error, DeliveryError):
        return (
            "⏰ Couldn't update your reminders.\n\n"
            "They will be rescheduled on the next hourly check."
        )
    if isinstance(error, sqlite3.Error):
        return "💾 Couldn't read your tasks right now.\n\nPlease try again in a moment."
    if isinstance(error, TimedOut):
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if isinstance(error, BadRequest):
        return (
            "❌ Invalid request.\n\n"
            "Please check your command syntax and try again. Use /help for examples."
        )
    return GENERIC_ERROR_MESSAGE


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log the failing update and tell the user something went wrong."""
    error = context.error
    tb_list = traceback.format_exception(None, error, error.__traceback__ if error else None)
    logger.error(f"Exception while handling an update:\n{''.join(tb_list)}")

    if not isinstance(update, Update) or not update.effective_message:
        return

    try:
        await update.effective_message.reply_text(user_message_for(error))
    except Exception as e:
        logger.error(f"Failed to send error message to user: {e}")
