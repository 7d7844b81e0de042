"""Service layer: the server functions the web page calls, plus the daily job."""
from .activity import log_activity, log_error
from .ai_gateway import call_generative_model, process_user_prompt, search_online
from .coaching import get_latest_coaching_report, run_daily_analysis
from .directory import (
    add_user,
    get_current_user_profile,
    get_settings,
    is_admin,
    list_users,
    update_setting,
)
from .projects import create_project, list_projects
from .secrets import SECRET_SETTING_NAMES, SecretStore

__all__ = [
    "log_activity",
    "log_error",
    "call_generative_model",
    "process_user_prompt",
    "search_online",
    "get_latest_coaching_report",
    "run_daily_analysis",
    "add_user",
    "get_current_user_profile",
    "get_settings",
    "is_admin",
    "list_users",
    "update_setting",
    "create_project",
    "list_projects",
    "SECRET_SETTING_NAMES",
    "SecretStore",
]
