"""Exception types raised by the workflow engine."""


class MissionControlError(Exception):
    """Base class for engine errors."""


class ValidationError(MissionControlError, ValueError):
    """Raised when an argument is malformed or outside its allowed values.

    Always raised before anything is written.
    """


class NotFoundError(MissionControlError, LookupError):
    """Raised when a referenced entity (not the one being mutated) is missing."""
