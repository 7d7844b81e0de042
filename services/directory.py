"""User and admin directory.

Resolves the caller's profile, checks the Admin role, and implements the
admin-only user and settings management. Admin operations raise
``AuthorizationError`` for non-admin callers; the web layer turns that into an
``OperationResponse``.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from database.schema import CONFIG, ROLE_ADMIN, ROLE_USER, USERS, build_row
from database.tabular import TabularStore
from shared.context import RequestContext
from shared.errors import AuthorizationError, DuplicateError, NotFoundError, ValidationError
from shared.timestamps import isoformat_fields, now, to_iso

from .activity import ADMIN_ACTION, log_activity
from .secrets import SECRET_SETTING_NAMES

logger = logging.getLogger(__name__)

USER_TIMESTAMP_COLUMNS = ("Created_At", "Updated_At")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")


def _cell(row: list, index: int) -> Any:
    return row[index] if index < len(row) else ""


def _same_email(a: Any, b: Any) -> bool:
    return str(a or "").strip().lower() == str(b or "").strip().lower()


def _display_name(email: str) -> str:
    return email.split("@")[0]


def get_current_user_profile(ctx: RequestContext) -> Dict[str, Any]:
    """Profile of the caller, created with Role=User on first access."""
    table = ctx.store.open_table(USERS)
    rows = table.read_all_rows()
    id_col = table.column_index("User_ID", rows)

    for record, row in zip(table.records(rows), rows[1:]):
        if _same_email(_cell(row, id_col), ctx.user_email):
            return isoformat_fields(record, USER_TIMESTAMP_COLUMNS)

    timestamp = to_iso(now())
    profile = {
        "User_ID": ctx.user_email,
        "Display_Name": _display_name(ctx.user_email),
        "Role": ROLE_USER,
        "Created_At": timestamp,
        "Updated_At": timestamp,
    }
    table.append_row(build_row(USERS, profile))
    logger.info("Created profile for first-time user %s", ctx.user_email)
    return profile


def is_admin(ctx: RequestContext, email: Optional[str] = None) -> bool:
    """True iff the user's row has Role 'Admin' (any case).

    Args:
        ctx: Request context
        email: User to check; defaults to the caller

    Raises:
        NotFoundError: the users table lacks a 'Role' or 'User_ID' column
    """
    email = email or ctx.user_email
    table = ctx.store.open_table(USERS)
    rows = table.read_all_rows()
    role_col = table.column_index("Role", rows)
    id_col = table.column_index("User_ID", rows)

    for row in rows[1:]:
        if _same_email(_cell(row, id_col), email):
            if str(_cell(row, role_col) or "").strip().lower() == ROLE_ADMIN.lower():
                logger.info("User %s is confirmed as an Admin.", email)
                return True
            break

    logger.info("User %s is not an Admin.", email)
    return False


def _require_admin(ctx: RequestContext, action: str) -> None:
    if not is_admin(ctx):
        raise AuthorizationError(f"Authorization error: Only admins can {action}.")


def list_users(ctx: RequestContext) -> List[Dict[str, Any]]:
    _require_admin(ctx, "view the user list")
    table = ctx.store.open_table(USERS)
    return [isoformat_fields(r, USER_TIMESTAMP_COLUMNS) for r in table.records()]


def add_user(ctx: RequestContext, new_user_email: str) -> Dict[str, Any]:
    """Add a user with the default role.

    Raises:
        AuthorizationError: caller is not an admin
        ValidationError: the email is malformed
        DuplicateError: the user already exists
    """
    _require_admin(ctx, "add new users")
    email = (new_user_email or "").strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format provided.")

    table = ctx.store.open_table(USERS)
    rows = table.read_all_rows()
    id_col = table.column_index("User_ID", rows)
    if any(_same_email(_cell(row, id_col), email) for row in rows[1:]):
        raise DuplicateError(f'User with email "{email}" already exists.')

    timestamp = to_iso(now())
    user = {
        "User_ID": email,
        "Display_Name": _display_name(email),
        "Role": ROLE_USER,
        "Created_At": timestamp,
        "Updated_At": timestamp,
    }
    table.append_row(build_row(USERS, user))
    logger.info("Admin %s added new user: %s", ctx.user_email, email)
    log_activity(ctx, ADMIN_ACTION, f"Added user {email}")

    return {key: user[key] for key in ("User_ID", "Display_Name", "Role")}


def get_settings(ctx: RequestContext) -> Dict[str, Any]:
    """All settings as {Setting_Name: Setting_Value}."""
    _require_admin(ctx, "access system settings")
    table = ctx.store.open_table(CONFIG)
    settings = {r["Setting_Name"]: r.get("Setting_Value") for r in table.records() if r.get("Setting_Name")}
    logger.info("Fetched system settings for admin panel.")
    return settings


def update_setting(ctx: RequestContext, setting_name: str, new_value: Any) -> Dict[str, str]:
    """Update one setting.

    The API keys in ``SECRET_SETTING_NAMES`` go to the secret store and never
    touch the Config_Settings table. Every other name must already have a row.

    Raises:
        AuthorizationError: caller is not an admin
        NotFoundError: no row for ``setting_name``
    """
    _require_admin(ctx, "update system settings")

    if setting_name in SECRET_SETTING_NAMES:
        ctx.secrets.set(setting_name, str(new_value))
        log_activity(ctx, ADMIN_ACTION, f"Updated secret {setting_name}")
        return {"status": "success", "message": f"{setting_name} updated securely."}

    table = ctx.store.open_table(CONFIG)
    rows = table.read_all_rows()
    name_col = table.column_index("Setting_Name", rows)
    value_col = table.column_index("Setting_Value", rows)

    for row_index, row in enumerate(rows[1:], start=1):
        if _cell(row, name_col) != setting_name:
            continue
        table.update_cell(row_index, value_col, new_value)
        logger.info('Updated setting "%s" in the sheet.', setting_name)
        log_activity(ctx, ADMIN_ACTION, f"Updated setting {setting_name}")
        return {"status": "success", "message": f"{setting_name} updated."}

    raise NotFoundError(f'Setting "{setting_name}" not found in Config_Settings.')


def get_setting_value(store: TabularStore, setting_name: str, default: Any = None) -> Any:
    """Read one setting without an admin check; ``default`` if absent."""
    try:
        records = store.open_table(CONFIG).records()
    except NotFoundError:
        return default
    for record in records:
        if record.get("Setting_Name") == setting_name and record.get("Setting_Value") not in (None, ""):
            return record["Setting_Value"]
    return default
