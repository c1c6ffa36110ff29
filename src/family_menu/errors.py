"""
Exception types raised by the planner.

Generation code raises these and lets them propagate; the application
controller turns them into a user-visible error message.
"""


class FamilyMenuError(Exception):
    """Base class for all planner errors."""


class AuthenticationError(FamilyMenuError):
    """The API key was rejected or has no access to the model."""


class MalformedResponseError(FamilyMenuError):
    """The model kept returning unparseable JSON after the repair attempt."""


class InvalidResponseError(FamilyMenuError):
    """The model returned well-formed data with the wrong shape or content."""


class ImportFormatError(FamilyMenuError):
    """An imported data file is unreadable or missing required sections."""
