"""
Error taxonomy for the marketplace workflow.

Every failure raised by the store or the workflow engine is a WorkflowError.
The HTTP layer converts them to JSON responses in one exception handler.
"""


class WorkflowError(Exception):
    """Base workflow error."""
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(WorkflowError):
    """Referenced entity is absent."""
    kind = "NotFound"
    status_code = 404


class InvalidArgumentError(WorkflowError):
    """Malformed numeric or enum input."""
    kind = "InvalidArgument"
    status_code = 400


class InvalidStateError(WorkflowError):
    """Operation is not valid for the current lifecycle state."""
    kind = "InvalidState"
    status_code = 409


class ConflictError(WorkflowError):
    """A concurrent transition already changed the state the caller assumed."""
    kind = "Conflict"
    status_code = 409


class InternalError(WorkflowError):
    kind = "Internal"
    status_code = 500


class StorageError(InternalError):
    """A record write failed; the unit of work it belonged to was rolled back."""


class ConsistencyError(InternalError, InvalidStateError):
    """Stored records disagree with each other (e.g. project missing from a freelancer's active list)."""
    kind = "Internal"
    status_code = 500
