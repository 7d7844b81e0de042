"""Error types raised by the service layer.

Admin and project operations raise these to their caller; the web layer turns
them into an ``OperationResponse`` carrying ``kind``. The chat and coaching
report endpoints never let them escape.
"""


class DeskPilotError(Exception):
    """Base class for expected, user-facing failures."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DeskPilotError):
    """A table, row, column, setting or folder does not exist."""

    kind = "not_found"


class FolderExistsError(NotFoundError):
    """A project folder with the same name already exists under the root."""

    kind = "conflict"


class AuthorizationError(DeskPilotError):
    """A non-admin caller invoked an admin-only operation."""

    kind = "authorization"


class ValidationError(DeskPilotError):
    """Empty or malformed input."""

    kind = "validation"


class DuplicateError(ValidationError):
    kind = "duplicate"


class UpstreamError(DeskPilotError):
    """An external API failed or returned something unusable."""

    kind = "upstream"
