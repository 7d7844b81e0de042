"""File store package: folder trees for projects."""
from .client import (
    FileStore,
    DriveFileStore,
    LocalFileStore,
    get_file_store,
)

__all__ = [
    "FileStore",
    "DriveFileStore",
    "LocalFileStore",
    "get_file_store",
]
