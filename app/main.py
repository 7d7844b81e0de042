"""FastAPI server for DeskPilot.

Serves the single page of the web app and the JSON server functions the page
calls as remote procedures. Admin and project functions answer with an
``OperationResponse``; chat and the coaching report answer with plain text
and never fail.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from markupsafe import Markup
from pydantic import BaseModel, Field

from database.tabular import TabularStore, get_tabular_store
from file_store import FileStore, get_file_store
from services import (
    add_user,
    create_project,
    get_current_user_profile,
    get_latest_coaching_report,
    get_settings,
    is_admin,
    list_projects,
    list_users,
    log_error,
    process_user_prompt,
    run_daily_analysis,
    update_setting,
)
from services.coaching import get_report_hour, next_run_at
from services.directory import get_setting_value
from services.secrets import SecretStore
from shared.config import Configuration
from shared.context import SYSTEM_USER, RequestContext
from shared.errors import DeskPilotError, NotFoundError
from shared.timestamps import now

# --------------------------------------------------------------------------- #
# Environment / logging setup
# --------------------------------------------------------------------------- #

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("deskpilot.api")

# --------------------------------------------------------------------------- #
# FastAPI application & configuration
# --------------------------------------------------------------------------- #

app = FastAPI(
    title="DeskPilot API",
    description="AI chat, projects, activity coaching and administration.",
    version="1.0.0",
)

TEMPLATES_DIR = Path(__file__).parent / "templates"
PARTIALS_DIR = TEMPLATES_DIR / "partials"
DEFAULT_TITLE = "DeskPilot"
_PARTIAL_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

IAP_EMAIL_HEADER = "X-Goog-Authenticated-User-Email"
FORWARDED_EMAIL_HEADER = "X-Forwarded-Email"

ERROR_STATUS = {
    "validation": 400,
    "duplicate": 400,
    "authorization": 403,
    "not_found": 404,
    "conflict": 409,
    "upstream": 502,
}


def include(filename: str) -> Markup:
    """Inline a partial from templates/partials verbatim."""
    if not _PARTIAL_NAME_RE.match(filename or ""):
        raise NotFoundError(f"Invalid partial name '{filename}'.")
    path = PARTIALS_DIR / f"{filename}.html"
    if not path.is_file():
        raise NotFoundError(f"Partial '{filename}' not found.")
    return Markup(path.read_text(encoding="utf-8"))


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["include"] = include

# --------------------------------------------------------------------------- #
# Shared configuration and collaborators
# --------------------------------------------------------------------------- #

_APP_CONFIG: Optional[Configuration] = None
_STORE: Optional[TabularStore] = None
_FILES: Optional[FileStore] = None
_SECRETS: Optional[SecretStore] = None


def get_app_config() -> Configuration:
    global _APP_CONFIG
    if _APP_CONFIG is None:
        cfg = Configuration()
        try:
            cfg.validate()
            logger.info("Configuration loaded successfully.")
        except ValueError as exc:
            logger.warning("Configuration validation failed: %s", exc)
            raise HTTPException(status_code=500, detail=f"Configuration error: {exc}")
        _APP_CONFIG = cfg
    return _APP_CONFIG


def get_store(config: Configuration = Depends(get_app_config)) -> TabularStore:
    global _STORE
    if _STORE is None:
        _STORE = get_tabular_store(config)
    return _STORE


def get_files(config: Configuration = Depends(get_app_config)) -> FileStore:
    global _FILES
    if _FILES is None:
        _FILES = get_file_store(config)
    return _FILES


def get_secrets(config: Configuration = Depends(get_app_config)) -> SecretStore:
    global _SECRETS
    if _SECRETS is None:
        _SECRETS = SecretStore(config.secrets_env_path)
    return _SECRETS


def resolve_user_email(headers, config: Configuration) -> Optional[str]:
    """Caller email from the identity headers, else the configured default.

    Identity-Aware Proxy sends ``accounts.google.com:<email>``; the prefix is
    dropped. ``X-Forwarded-Email`` is only honoured when
    ``config.trust_forwarded_email`` is set, since any client can send it.
    """
    trusted = [IAP_EMAIL_HEADER]
    if config.trust_forwarded_email:
        trusted.append(FORWARDED_EMAIL_HEADER)
    for header in trusted:
        value = headers.get(header)
        if value:
            return value.split(":")[-1].strip()
    return config.default_user_email


def get_request_context(
    request: Request,
    config: Configuration = Depends(get_app_config),
    store: TabularStore = Depends(get_store),
    files: FileStore = Depends(get_files),
    secrets: SecretStore = Depends(get_secrets),
) -> RequestContext:
    """Build the per-request context; 401 when the caller is unknown."""
    email = resolve_user_email(request.headers, config)
    if not email:
        raise HTTPException(status_code=401, detail="Could not determine the signed-in user.")
    return RequestContext(user_email=email, store=store, secrets=secrets, config=config, files=files)


def _run_operation(ctx: RequestContext, operation: Callable[..., Any], *args: Any):
    """Run an admin/project operation and wrap the outcome.

    Expected failures become ``success=False`` with the error kind and a
    matching status code. Anything else is recorded in System_Errors and
    re-raised.
    """
    try:
        return OperationResponse(success=True, data=operation(ctx, *args))
    except DeskPilotError as exc:
        logger.warning("%s failed for %s: %s", operation.__name__, ctx.user_email, exc.message)
        payload = OperationResponse(success=False, error=exc.message, error_kind=exc.kind)
        return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 400), content=payload.model_dump())
    except Exception as exc:
        logger.error("Unexpected error in %s: %s", operation.__name__, exc, exc_info=True)
        log_error(ctx.store, operation.__name__, str(exc), ctx.user_email)
        raise


# --------------------------------------------------------------------------- #
# Pydantic models
# --------------------------------------------------------------------------- #


class HealthResponse(BaseModel):
    status: str
    message: str


class OperationResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class TextResponse(BaseModel):
    text: str


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message for the assistant")
    search_online: bool = Field(False, description="Ground the answer in web search results")


class CreateProjectRequest(BaseModel):
    project_name: str


class IsAdminRequest(BaseModel):
    email: Optional[str] = Field(default=None, description="User to check; defaults to the caller")


class AddUserRequest(BaseModel):
    email: str


class UpdateSettingRequest(BaseModel):
    setting_name: str
    value: Any


class CoachingReportRequest(BaseModel):
    email: Optional[str] = Field(default=None, description="User whose report to fetch; defaults to the caller, other users need Admin")


class CoachingReportResponse(BaseModel):
    found: bool
    report_id: Optional[str] = None
    report_date: Optional[str] = None
    content: str


# --------------------------------------------------------------------------- #
# Page
# --------------------------------------------------------------------------- #


@app.get("/", response_class=HTMLResponse)
def index(request: Request, store: TabularStore = Depends(get_store)):
    """Serve the single page of the app."""
    title = get_setting_value(store, "APP_TITLE", DEFAULT_TITLE)
    return templates.TemplateResponse(
        request,
        "index.html",
        {"title": title, "viewport": "width=device-width, initial-scale=1.0"},
    )


@app.get("/api/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="DeskPilot is operational")


# --------------------------------------------------------------------------- #
# Chat
# --------------------------------------------------------------------------- #


@app.post("/api/chat", response_model=TextResponse)
def chat(payload: ChatRequest, ctx: RequestContext = Depends(get_request_context)) -> TextResponse:
    """Answer a chat message; failures come back as text."""
    logger.info("CHAT REQUEST: user=%s, search=%s, message='%s...'", ctx.user_email, payload.search_online, payload.message[:50])
    return TextResponse(text=process_user_prompt(ctx, payload.message, with_search=payload.search_online))


# --------------------------------------------------------------------------- #
# Profile and projects
# --------------------------------------------------------------------------- #


@app.post("/api/profile", response_model=OperationResponse)
def profile(ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, get_current_user_profile)


@app.post("/api/projects/list", response_model=OperationResponse)
def projects_list(ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, list_projects)


@app.post("/api/projects/create", response_model=OperationResponse)
def projects_create(payload: CreateProjectRequest, ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, create_project, payload.project_name)


# --------------------------------------------------------------------------- #
# Admin
# --------------------------------------------------------------------------- #


def _is_admin_payload(ctx: RequestContext, email: Optional[str]) -> Dict[str, Any]:
    return {"is_admin": is_admin(ctx, email)}


@app.post("/api/admin/is-admin", response_model=OperationResponse)
def admin_is_admin(payload: IsAdminRequest, ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, _is_admin_payload, payload.email)


@app.post("/api/admin/users/list", response_model=OperationResponse)
def admin_list_users(ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, list_users)


@app.post("/api/admin/users/add", response_model=OperationResponse)
def admin_add_user(payload: AddUserRequest, ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, add_user, payload.email)


@app.post("/api/admin/settings/get", response_model=OperationResponse)
def admin_get_settings(ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, get_settings)


@app.post("/api/admin/settings/update", response_model=OperationResponse)
def admin_update_setting(payload: UpdateSettingRequest, ctx: RequestContext = Depends(get_request_context)):
    return _run_operation(ctx, update_setting, payload.setting_name, payload.value)


# --------------------------------------------------------------------------- #
# Coaching
# --------------------------------------------------------------------------- #


@app.post("/api/coaching/latest", response_model=CoachingReportResponse)
def coaching_latest(
    payload: CoachingReportRequest = CoachingReportRequest(),
    ctx: RequestContext = Depends(get_request_context),
) -> CoachingReportResponse:
    """Latest coaching report for the caller; a missing report is not an error."""
    report = get_latest_coaching_report(ctx, payload.email)
    return CoachingReportResponse(
        found=report["found"],
        report_id=report.get("Report_ID"),
        report_date=report.get("Report_Date"),
        content=report["Report_Content"],
    )


# --------------------------------------------------------------------------- #
# Daily coaching scheduler
# --------------------------------------------------------------------------- #


async def daily_report_loop(config: Configuration, store: TabularStore, secrets: SecretStore):
    """Background task that runs the coaching job once a day."""
    ctx = RequestContext(user_email=SYSTEM_USER, store=store, secrets=secrets, config=config)
    logger.info("Daily coaching scheduler started")

    while True:
        current = now()
        # DAILY_REPORT_HOUR may be changed by an admin between runs
        next_run = next_run_at(current, get_report_hour(store, config.daily_report_hour))
        logger.info("Next coaching run at: %s", next_run.isoformat())
        await asyncio.sleep((next_run - current).total_seconds())
        try:
            stats = await asyncio.to_thread(run_daily_analysis, ctx)
            logger.info("Daily coaching run finished: %s", stats)
        except Exception as e:
            logger.error("Daily coaching run failed: %s", e, exc_info=True)


@app.on_event("startup")
async def startup_event():
    """Start the coaching scheduler when enabled."""
    config = Configuration()
    if not config.enable_daily_scheduler:
        return
    config = get_app_config()
    store = get_store(config)
    asyncio.create_task(daily_report_loop(config, store, get_secrets(config)))
    logger.info("Daily coaching scheduler task started")


# --------------------------------------------------------------------------- #
# Entrypoint
# --------------------------------------------------------------------------- #


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
