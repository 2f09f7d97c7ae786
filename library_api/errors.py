"""
Domain exceptions raised by the database service layer.

Routes translate these into ``HTTPException`` responses.
"""


class LibraryError(Exception):
    """Base class for library domain errors."""


class RecordNotFound(LibraryError):
    """The requested record does not exist."""

    def __init__(self, resource: str, record_id: int):
        self.resource = resource
        self.record_id = record_id
        super().__init__(f"{resource} with ID '{record_id}' not found")


class RecordInvalid(LibraryError):
    """The record failed a domain validation (missing reference, dependents, ...)."""


class InvalidTransition(LibraryError):
    """Borrow/return is not valid in the copy's current state."""


class TransitionForbidden(LibraryError):
    """The principal may not perform this transition."""
