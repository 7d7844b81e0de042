"""Activity and error logging to the tabular store.

Both writers are best-effort: a failure is logged and swallowed so that a
broken log table never takes a user request down with it.
"""
import logging
import uuid
from typing import Optional

from database.schema import ACTIVITY_LOG, ERRORS, build_row
from database.tabular import TabularStore
from shared.context import RequestContext
from shared.timestamps import now, to_iso

logger = logging.getLogger(__name__)

CHAT_MESSAGE = "CHAT_MESSAGE"
ONLINE_SEARCH = "ONLINE_SEARCH"
CREATE_PROJECT = "CREATE_PROJECT"
ADMIN_ACTION = "ADMIN_ACTION"


def log_activity(
    ctx: RequestContext,
    activity_type: str,
    activity_details: str,
    project_id: Optional[str] = None,
    api_call_count: int = 0,
    api_token_count: int = 0,
    user_id: Optional[str] = None,
) -> Optional[str]:
    """Append one row to the activity log.

    Args:
        ctx: Request context; its caller is the default user
        activity_type: Category such as CHAT_MESSAGE or CREATE_PROJECT
        activity_details: Free-text description
        project_id: Project involved, if any
        api_call_count: Number of AI API calls made for this activity
        api_token_count: Tokens used by those calls
        user_id: Override for the acting user

    Returns:
        The new Activity_ID, or None if the write failed
    """
    activity_id = f"ACT-{uuid.uuid4()}"
    user = user_id or ctx.user_email
    try:
        table = ctx.store.open_table(ACTIVITY_LOG)
        table.append_row(build_row(ACTIVITY_LOG, {
            "Activity_ID": activity_id,
            "User_ID": user,
            "Project_ID": project_id or "",
            "Activity_Type": activity_type,
            "Activity_Details": activity_details,
            "Timestamp": to_iso(now()),
            "AI_API_Call_Count": api_call_count,
            "AI_API_Token_Count": api_token_count,
        }))
        logger.debug("Logged activity: %s for user %s", activity_type, user)
        return activity_id
    except Exception as e:
        logger.error("Failed to log activity. Error: %s", e)
        log_error(ctx.store, "log_activity", str(e), user)
        return None


def log_error(store: TabularStore, function_name: str, error_message: str, user_id: Optional[str]) -> None:
    """Append one row to System_Errors; as a last resort, log to the console."""
    try:
        table = store.open_table(ERRORS)
        table.append_row(build_row(ERRORS, {
            "Error_ID": f"ERR-{uuid.uuid4()}",
            "Timestamp": to_iso(now()),
            "Function_Name": function_name,
            "Error_Message": error_message,
            "User_ID": user_id or "",
        }))
    except Exception as e:
        logger.critical(
            "Failed to write to System_Errors sheet. Original error in %s: %s. Logging error: %s",
            function_name, error_message, e,
        )
