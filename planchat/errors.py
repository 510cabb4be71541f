"""
Exception types shared across planchat.

Parsing code never raises these for bad input; they mark I/O failures and
programming defects only.
"""


class PlanchatError(Exception):
    """Base exception for planchat errors."""
    pass


class ReportFetchError(PlanchatError):
    """Report content could not be fetched. Carries the report id for retry."""

    def __init__(self, report_id: str, message: str):
        super().__init__(message)
        self.report_id = report_id


class StreamReleasedError(PlanchatError):
    """A released chat session stream was used again."""
    pass


class InvalidStatusTransition(PlanchatError):
    """A chat message status change outside the allowed lifecycle."""
    pass
