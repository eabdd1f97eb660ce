"""
Exceptions raised by crewplan business logic.

Malformed schedule data never raises; these cover writes that could not be
applied and must be reported back to the caller.
"""


class CrewplanError(Exception):
    """Base class for crewplan errors."""


class StaleSheetError(CrewplanError):
    """A crew sheet changed between read and write (version mismatch)."""


class DispatchError(CrewplanError):
    """A crew assignment cannot be recorded (e.g. the leader has no job that day)."""
