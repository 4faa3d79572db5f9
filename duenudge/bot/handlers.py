"""Command handlers."""

import logging
from dataclasses import replace
from datetime import time
from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram import Update
from telegram.ext import ContextTypes

from duenudge.bot.formatters import (
    format_help_message,
    format_pending_list,
    format_settings_message,
    format_summary_message,
    format_welcome_message,
)
from duenudge.db.repository import Repository
from duenudge.delivery.sink import NotificationSink
from duenudge.engine.batch import calculate_all, summarize
from duenudge.engine.dispatcher import Dispatcher
from duenudge.utils.constants import (
    MAX_CHECK_IN_FREQUENCY,
    MAX_FREQUENCY_MULTIPLIER,
    MIN_FREQUENCY_MULTIPLIER,
    PEAK_ENERGY_HOURS,
    PRIORITIES,
)

logger = logging.getLogger(__name__)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not update.message:
        return

    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def pending_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /pending command - list scheduled notifications."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    sink: NotificationSink = context.bot_data["sink"]

    profile = await repo.get_profile()
    pending = await sink.list_pending()

    await update.message.reply_html(format_pending_list(pending, profile))


async def summary_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /summary command - what the engine would schedule right now."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]

    tasks = await repo.get_tasks()
    profile = await repo.get_profile()
    preferences = await repo.get_preferences()

    schedules = calculate_all(tasks, profile, preferences=preferences)
    await update.message.reply_html(format_summary_message(summarize(schedules)))


async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile()
    preferences = await repo.get_preferences()

    await update.message.reply_html(format_settings_message(preferences, profile))


async def _resync(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Re-run the sweep with every task forced through the calculator again."""
    repo: Repository = context.bot_data["repo"]
    dispatcher: Dispatcher = context.bot_data["dispatcher"]

    for task_id in await repo.tracked_task_ids():
        await repo.clear_snapshot(task_id)
    await dispatcher.sweep()


async def _apply_preferences(context: ContextTypes.DEFAULT_TYPE, preferences) -> None:
    """Persist preferences so schedules follow."""
    repo: Repository = context.bot_data["repo"]
    await repo.save_preferences(preferences)
    await _resync(context)


async def _apply_profile(context: ContextTypes.DEFAULT_TYPE, profile) -> None:
    """Persist the profile so schedules and check-ins follow."""
    repo: Repository = context.bot_data["repo"]
    await repo.save_profile(profile)
    await _resync(context)


async def quiet_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /quiet <start> <end> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    preferences = await repo.get_preferences()

    # If no args, show current
    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            f"<b>Current quiet hours:</b> {preferences.quiet_hours_start} - "
            f"{preferences.quiet_hours_end}\n\n"
            "To change: <code>/quiet 22:00 07:00</code>"
        )
        return

    quiet_start = context.args[0]
    quiet_end = context.args[1]

    # Validate time format
    try:
        time.fromisoformat(quiet_start)
        time.fromisoformat(quiet_end)
    except ValueError:
        await update.message.reply_text(
            "Invalid time format. Use HH:MM (24-hour format)\n\n"
            "Example: /quiet 22:00 07:00"
        )
        return

    await _apply_preferences(
        context,
        replace(preferences, quiet_hours_start=quiet_start, quiet_hours_end=quiet_end),
    )

    await update.message.reply_html(
        f"✓ Quiet hours updated to <b>{quiet_start} - {quiet_end}</b>\n\n"
        "No reminders will arrive during these hours."
    )


async def frequency_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /frequency <multiplier> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    preferences = await repo.get_preferences()

    if not context.args:
        await update.message.reply_html(
            f"<b>Current frequency:</b> {preferences.frequency_multiplier:g}x\n\n"
            "To change: <code>/frequency 1.5</code> "
            f"({MIN_FREQUENCY_MULTIPLIER:g} - {MAX_FREQUENCY_MULTIPLIER:g})"
        )
        return

    try:
        multiplier = float(context.args[0])
    except ValueError:
        await update.message.reply_text("Frequency must be a number, e.g. /frequency 1.5")
        return

    if not MIN_FREQUENCY_MULTIPLIER <= multiplier <= MAX_FREQUENCY_MULTIPLIER:
        await update.message.reply_text(
            f"Frequency must be between {MIN_FREQUENCY_MULTIPLIER:g} "
            f"and {MAX_FREQUENCY_MULTIPLIER:g}."
        )
        return

    await _apply_preferences(context, replace(preferences, frequency_multiplier=multiplier))
    await update.message.reply_html(f"✓ Frequency set to <b>{multiplier:g}x</b>")


async def _set_priority_muted(
    update: Update, context: ContextTypes.DEFAULT_TYPE, muted: bool
) -> None:
    if not update.message:
        return

    command = "mute" if muted else "unmute"
    if not context.args or context.args[0].lower() not in PRIORITIES:
        await update.message.reply_text(f"Usage: /{command} <high|medium|low>")
        return

    priority = context.args[0].lower()
    repo: Repository = context.bot_data["repo"]
    preferences = await repo.get_preferences()

    disabled = set(preferences.disabled_priorities)
    if muted:
        disabled.add(priority)
    else:
        disabled.discard(priority)

    await _apply_preferences(
        context, replace(preferences, disabled_priorities=frozenset(disabled))
    )

    state = "muted" if muted else "enabled"
    await update.message.reply_html(f"✓ {priority.title()} priority reminders {state}")


async def mute_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /mute <priority> command."""
    await _set_priority_muted(update, context, muted=True)


async def unmute_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unmute <priority> command."""
    await _set_priority_muted(update, context, muted=False)


async def dismiss_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /dismiss <task_id> command."""
    if not update.message:
        return

    if not context.args:
        await update.message.reply_text("Usage: /dismiss <task_id>")
        return

    repo: Repository = context.bot_data["repo"]
    dispatcher: Dispatcher = context.bot_data["dispatcher"]

    task = await repo.get_task(context.args[0])
    if not task:
        await update.message.reply_text(f"Task {context.args[0]} not found.")
        return

    cancelled = await dispatcher.dismiss_task(task.id)
    logger.info(f"Task {task.id} dismissed via command ({cancelled} cancelled)")

    await update.message.reply_html(
        f"✓ <b>{escape(task.title)}</b> silenced for today ({cancelled} reminders cancelled)"
    )


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <timezone> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile()

    # If no timezone provided, show current
    if not context.args:
        await update.message.reply_html(
            f"<b>Current timezone:</b> {profile.timezone}\n\n"
            "To change: <code>/timezone America/Toronto</code>\n\n"
            "See full list: https://en.wikipedia.org/wiki/List_of_tz_database_time_zones"
        )
        return

    new_timezone = context.args[0]

    try:
        ZoneInfo(new_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        await update.message.reply_text(
            f"Invalid timezone: {new_timezone}\n\n"
            "Use format like: America/Toronto, Europe/London, etc."
        )
        return

    await _apply_profile(context, replace(profile, timezone=new_timezone))
    await update.message.reply_html(
        f"✓ Timezone updated to <b>{escape(new_timezone)}</b>\n\n"
        "All reminders now follow this clock."
    )


async def workhours_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /workhours <start> <end> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile()

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            f"<b>Current work hours:</b> {profile.work_hours_start} - "
            f"{profile.work_hours_end}\n\n"
            "To change: <code>/workhours 09:00 17:00</code>"
        )
        return

    work_start = context.args[0]
    work_end = context.args[1]

    try:
        start = time.fromisoformat(work_start)
        end = time.fromisoformat(work_end)
    except ValueError:
        await update.message.reply_text(
            "Invalid time format. Use HH:MM (24-hour format)\n\n"
            "Example: /workhours 09:00 17:00"
        )
        return

    if start >= end:
        await update.message.reply_text("Work hours must start before they end.")
        return

    await _apply_profile(
        context, replace(profile, work_hours_start=work_start, work_hours_end=work_end)
    )
    await update.message.reply_html(
        f"✓ Work hours updated to <b>{work_start} - {work_end}</b>\n\n"
        "Work task reminders and check-ins stay inside these hours."
    )


async def energy_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /energy <morning|afternoon|evening> command."""
    if not update.message:
        return

    choices = "|".join(PEAK_ENERGY_HOURS)
    if not context.args or context.args[0].lower() not in PEAK_ENERGY_HOURS:
        await update.message.reply_text(f"Usage: /energy <{choices}>")
        return

    peak = context.args[0].lower()
    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile()

    await _apply_profile(context, replace(profile, peak_energy_time=peak))
    await update.message.reply_html(
        f"✓ Peak energy set to <b>{peak}</b>\n\n"
        "Undated high priority tasks are nudged at that time."
    )


async def leadtime_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /leadtime <minutes> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    preferences = await repo.get_preferences()

    if not context.args:
        await update.message.reply_html(
            f"<b>Current minimum lead time:</b> {preferences.minimum_lead_time} min\n\n"
            "To change: <code>/leadtime 10</code>"
        )
        return

    try:
        minutes = int(context.args[0])
    except ValueError:
        await update.message.reply_text("Lead time must be whole minutes, e.g. /leadtime 10")
        return

    if minutes < 0:
        await update.message.reply_text("Lead time cannot be negative.")
        return

    await _apply_preferences(context, replace(preferences, minimum_lead_time=minutes))
    await update.message.reply_html(
        f"✓ Reminders now need at least <b>{minutes} min</b> of notice"
    )


async def checkins_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /checkins <count> command."""
    if not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile()

    if not context.args:
        await update.message.reply_html(
            f"<b>Check-ins per work day:</b> {profile.check_in_frequency}\n\n"
            "To change: <code>/checkins 3</code> "
            f"(0 - {MAX_CHECK_IN_FREQUENCY}, 0 turns them off)"
        )
        return

    try:
        count = int(context.args[0])
    except ValueError:
        await update.message.reply_text("Check-ins must be a whole number, e.g. /checkins 3")
        return

    if not 0 <= count <= MAX_CHECK_IN_FREQUENCY:
        await update.message.reply_text(
            f"Check-ins must be between 0 and {MAX_CHECK_IN_FREQUENCY}."
        )
        return

    await _apply_profile(context, replace(profile, check_in_frequency=count))
    if count:
        await update.message.reply_html(f"✓ <b>{count}</b> check-ins per work day")
    else:
        await update.message.reply_html("✓ Check-ins turned off")
