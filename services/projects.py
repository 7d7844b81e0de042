"""Projects: a Project_List row plus a folder tree in the file store."""
import logging
import uuid
from typing import Any, Dict, List

from database.schema import PROJECTS, build_row
from shared.context import RequestContext
from shared.errors import FolderExistsError, NotFoundError, ValidationError
from shared.timestamps import isoformat_fields, now, to_iso

from .activity import CREATE_PROJECT, log_activity, log_error

logger = logging.getLogger(__name__)

PROJECT_SUBFOLDERS = ("Code", "UI", "Documents", "Uploads")
PROJECT_TIMESTAMP_COLUMNS = ("Created_At", "Last_Activity_At")


def create_project_folders(ctx: RequestContext, project_name: str) -> str:
    """Create the folder tree for a project under the root folder.

    Returns:
        Id of the project folder

    Raises:
        FolderExistsError: a folder with this name already exists under the root
    """
    if ctx.files is None:
        raise NotFoundError("No file store is configured.")
    root_id = ctx.files.get_or_create_root(ctx.config.root_folder_name)
    if ctx.files.find_child_folder(root_id, project_name):
        raise FolderExistsError(f'A project named "{project_name}" already exists.')

    folder_id = ctx.files.create_folder(root_id, project_name)
    for subfolder in PROJECT_SUBFOLDERS:
        ctx.files.create_folder(folder_id, subfolder)

    logger.info("Created folder structure for project: %s", project_name)
    return folder_id


def create_project(ctx: RequestContext, project_name: str) -> Dict[str, Any]:
    """Create a project record and its folder structure.

    The Project_List table is resolved and the folder name checked for
    collisions before anything is written. Once the folders exist there is no
    rollback: if the row write then fails, the orphaned folder id is recorded
    in System_Errors for manual clean-up and the error propagates.

    Raises:
        ValidationError: empty or whitespace-only name
        FolderExistsError: a project folder with this name already exists
        NotFoundError: the Project_List table is missing
    """
    if not project_name or not project_name.strip():
        raise ValidationError("Project name cannot be empty.")
    name = project_name.strip()

    project_table = ctx.store.open_table(PROJECTS)
    folder_id = create_project_folders(ctx, name)

    timestamp = to_iso(now())
    record = {
        "Project_ID": f"PROJ-{uuid.uuid4()}",
        "Project_Name": name,
        "Created_By_User_ID": ctx.user_email,
        "Created_At": timestamp,
        "Last_Activity_At": timestamp,
    }
    try:
        project_table.append_row(build_row(PROJECTS, record))
    except Exception as e:
        logger.error("Project row for '%s' not written, folder %s left in place: %s", name, folder_id, e)
        log_error(
            ctx.store,
            "create_project",
            f"Folder {folder_id} created for project '{name}' but the Project_List row failed: {e}",
            ctx.user_email,
        )
        raise

    logger.info('New project "%s" added to sheet by %s.', name, ctx.user_email)
    log_activity(ctx, CREATE_PROJECT, f"Created project {name}", project_id=record["Project_ID"])
    return {**record, "Folder_ID": folder_id}


def list_projects(ctx: RequestContext) -> List[Dict[str, Any]]:
    """All projects, timestamps as ISO strings. Failures yield an empty list."""
    try:
        records = ctx.store.open_table(PROJECTS).records()
        projects = [isoformat_fields(r, PROJECT_TIMESTAMP_COLUMNS) for r in records]
        logger.info("Successfully retrieved %d projects.", len(projects))
        return projects
    except Exception as e:
        logger.error("A critical error occurred in list_projects: %s", e)
        log_error(ctx.store, "list_projects", str(e), ctx.user_email)
        return []
