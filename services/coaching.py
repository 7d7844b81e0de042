"""Daily coaching reports.

``run_daily_analysis`` is the batch job: once a day it turns each user's
activity for the current calendar day into an AI-written coaching report.
Users are processed one after another; a failure for one user is logged and
the batch moves on. ``get_latest_coaching_report`` is the read path used by the
dashboard and never raises.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from database.schema import ACTIVITY_LOG, COACHING_REPORTS, USERS, build_row
from database.tabular import TabularStore
from shared.context import RequestContext
from shared.timestamps import now, parse_timestamp, start_of_day, to_iso

from .activity import log_error
from .ai_gateway import call_generative_model
from .directory import get_setting_value, is_admin
from .prompts import COACHING_PROMPT

logger = logging.getLogger(__name__)

COACHING_TEMPERATURE = 0.5
NO_REPORT_CONTENT = "No coaching report yet. Reports are generated at the end of each day you use the app."
FORBIDDEN_REPORT_CONTENT = "Only admins can view another user's coaching report."


def _same_email(a: Any, b: Any) -> bool:
    return str(a or "").strip().lower() == str(b or "").strip().lower()


def get_daily_activity_summary(
    store: TabularStore,
    user_email: str,
    current_time: Optional[datetime] = None,
) -> Optional[str]:
    """Summarize a user's activity between local midnight and ``current_time``.

    Returns:
        A text timeline in append order, or None if there was no activity
    """
    current_time = current_time or now()
    day_start = start_of_day(current_time)

    todays = []
    for record in store.open_table(ACTIVITY_LOG).records():
        if not _same_email(record.get("User_ID"), user_email):
            continue
        timestamp = parse_timestamp(record.get("Timestamp"))
        if timestamp is None or not day_start <= timestamp <= current_time:
            continue
        todays.append((timestamp, record))

    if not todays:
        return None

    summary = f"Total activities today: {len(todays)}\n\n"
    summary += "Activity Timeline:\n"
    for timestamp, record in todays:
        summary += (
            f"- [{timestamp.strftime('%H:%M:%S')}] "
            f"{record.get('Activity_Type', '')}: {record.get('Activity_Details', '')}\n"
        )
    return summary


def generate_report_for_user(
    ctx: RequestContext,
    user_email: str,
    current_time: Optional[datetime] = None,
) -> bool:
    """Generate and save today's report for one user.

    Returns:
        True if a report row was appended, False if the user had no activity
    """
    logger.info("Generating report for: %s", user_email)
    activity_summary = get_daily_activity_summary(ctx.store, user_email, current_time)

    if not activity_summary:
        logger.info("No activity found for %s today. Skipping report generation.", user_email)
        return False

    prompt = COACHING_PROMPT.format(activity_summary=activity_summary)
    report_content = call_generative_model(
        prompt,
        ctx.config,
        ctx.secrets,
        options={"temperature": COACHING_TEMPERATURE},
    )

    ctx.store.open_table(COACHING_REPORTS).append_row(build_row(COACHING_REPORTS, {
        "Report_ID": f"REP-{uuid.uuid4()}",
        "User_ID": user_email,
        "Report_Date": to_iso(now()),
        "Report_Content": report_content,
    }))
    logger.info("Successfully generated and saved report for %s.", user_email)
    return True


def run_daily_analysis(ctx: RequestContext, current_time: Optional[datetime] = None) -> Dict[str, int]:
    """Generate coaching reports for every user with activity today.

    Returns:
        Counts of generated, skipped (no activity) and failed users
    """
    logger.info("Starting daily behavioral analysis for all users...")
    stats = {"generated": 0, "skipped": 0, "failed": 0}

    for user in ctx.store.open_table(USERS).records():
        user_email = str(user.get("User_ID") or "").strip()
        if not user_email:
            continue
        try:
            if generate_report_for_user(ctx, user_email, current_time):
                stats["generated"] += 1
            else:
                stats["skipped"] += 1
        except Exception as e:
            stats["failed"] += 1
            logger.error("Failed to generate report for %s. Error: %s", user_email, e)
            log_error(ctx.store, "run_daily_analysis", str(e), user_email)

    logger.info("Daily behavioral analysis completed: %s", stats)
    return stats


def get_latest_coaching_report(ctx: RequestContext, user_email: Optional[str] = None) -> Dict[str, Any]:
    """Most recent report for a user (default: the caller).

    The latest report has the greatest Report_Date; on equal dates the row
    further down the table wins. Never raises: a missing report or an internal
    failure is returned as text with ``found`` set to False. Only admins may
    read another user's report.
    """
    user_email = user_email or ctx.user_email
    try:
        if not _same_email(user_email, ctx.user_email) and not is_admin(ctx):
            logger.warning("%s tried to read the coaching report of %s", ctx.user_email, user_email)
            return {"found": False, "Report_ID": None, "Report_Date": None, "Report_Content": FORBIDDEN_REPORT_CONTENT}

        latest = None
        latest_date = None
        for record in ctx.store.open_table(COACHING_REPORTS).records():
            if not _same_email(record.get("User_ID"), user_email):
                continue
            report_date = parse_timestamp(record.get("Report_Date")) or datetime.min
            if latest is None or report_date >= latest_date:
                latest, latest_date = record, report_date

        if latest is None:
            logger.info("No coaching report found for %s.", user_email)
            return {"found": False, "Report_ID": None, "Report_Date": None, "Report_Content": NO_REPORT_CONTENT}

        logger.info("Found latest coaching report for %s from %s", user_email, latest_date)
        return {
            "found": True,
            "Report_ID": latest.get("Report_ID"),
            "Report_Date": latest_date.isoformat() if latest_date != datetime.min else latest.get("Report_Date"),
            "Report_Content": latest.get("Report_Content", ""),
        }
    except Exception as e:
        logger.error("Error fetching coaching report for %s: %s", user_email, e)
        return {
            "found": False,
            "Report_ID": None,
            "Report_Date": None,
            "Report_Content": f"The coaching report could not be loaded right now ({e}).",
        }


def next_run_at(current_time: datetime, hour: int) -> datetime:
    """Next occurrence of ``hour``:00 local time strictly after ``current_time``."""
    candidate = current_time.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= current_time:
        candidate += timedelta(days=1)
    return candidate


def get_report_hour(store: TabularStore, default: int) -> int:
    """Hour of the daily run from the DAILY_REPORT_HOUR setting.

    Falls back to ``default`` when the row is missing or not a valid hour, so
    an admin typo never stops the scheduler.
    """
    value = get_setting_value(store, "DAILY_REPORT_HOUR", default)
    try:
        hour = int(str(value).strip())
    except ValueError:
        logger.warning("Ignoring invalid DAILY_REPORT_HOUR setting %r", value)
        return default
    if not 0 <= hour <= 23:
        logger.warning("Ignoring out of range DAILY_REPORT_HOUR setting %r", value)
        return default
    return hour
