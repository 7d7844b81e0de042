"""Hierarchical file store clients.

Project trees live under one root folder. ``DriveFileStore`` talks to Google
Drive; ``LocalFileStore`` uses directories on disk and is what development and
tests run against.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from shared.config import Configuration
from shared.errors import FolderExistsError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class FileStore(ABC):
    """Folder operations needed to lay out project trees."""

    @abstractmethod
    def find_child_folder(self, parent_id: Optional[str], name: str) -> Optional[str]:
        """Id of the folder ``name`` directly under ``parent_id`` (None: top level)."""

    @abstractmethod
    def create_folder(self, parent_id: Optional[str], name: str) -> str:
        """Create ``name`` under ``parent_id`` and return its id."""

    def get_or_create_root(self, name: str) -> str:
        """Return the top-level folder ``name``, creating it on first use."""
        folder_id = self.find_child_folder(None, name)
        if folder_id:
            return folder_id
        logger.info("Root folder '%s' not found, creating it", name)
        return self.create_folder(None, name)


class DriveFileStore(FileStore):
    """Folders in Google Drive (API v3)."""

    def __init__(self, service=None):
        self._service = service

    @property
    def service(self):
        if self._service is None:
            from shared.google_auth import get_drive_api_resource

            self._service = get_drive_api_resource()
        return self._service

    def find_child_folder(self, parent_id: Optional[str], name: str) -> Optional[str]:
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = f"mimeType = '{FOLDER_MIME_TYPE}' and name = '{escaped}' and trashed = false"
        if parent_id:
            query += f" and '{parent_id}' in parents"
        result = self.service.files().list(
            q=query,
            spaces="drive",
            fields="files(id, name)",
            pageSize=1,
        ).execute()
        files = result.get("files", [])
        return files[0]["id"] if files else None

    def create_folder(self, parent_id: Optional[str], name: str) -> str:
        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        created = self.service.files().create(body=metadata, fields="id").execute()
        return created["id"]


class LocalFileStore(FileStore):
    """Folders as directories under ``base_dir``; ids are relative paths."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, folder_id: Optional[str]) -> Path:
        if not folder_id:
            return self.base_dir
        path = (self.base_dir / folder_id).resolve()
        if self.base_dir not in path.parents:
            raise ValidationError(f"Folder id '{folder_id}' is outside the file store.")
        return path

    def _folder_id(self, path: Path) -> str:
        return path.relative_to(self.base_dir).as_posix()

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValidationError(f"'{name}' is not a valid folder name.")

    def find_child_folder(self, parent_id: Optional[str], name: str) -> Optional[str]:
        self._check_name(name)
        candidate = self._resolve(parent_id) / name
        if candidate.is_dir():
            return self._folder_id(candidate)
        return None

    def create_folder(self, parent_id: Optional[str], name: str) -> str:
        self._check_name(name)
        parent = self._resolve(parent_id)
        if not parent.is_dir():
            raise NotFoundError(f"Folder '{parent_id}' not found.")
        target = parent / name
        try:
            target.mkdir()
        except FileExistsError:
            raise FolderExistsError(f"A folder named '{name}' already exists.") from None
        return self._folder_id(target)


def get_file_store(config: Configuration) -> FileStore:
    """Build the file store selected by ``config.file_store_backend``."""
    if config.file_store_backend == "drive":
        return DriveFileStore()
    return LocalFileStore(config.local_file_root)
