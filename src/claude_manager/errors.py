"""Exception taxonomy for claude-manager.

Unknown session ids are not errors: operations on a session
that has just been deleted are silent no-ops.
"""

from __future__ import annotations


class ManagerError(Exception):
    """Base exception for claude-manager errors."""


class SpawnError(ManagerError):
    """The shell or the launch command could not be started."""


class CreationError(ManagerError):
    """A session could not be created. Nothing was registered."""


class SummaryError(ManagerError):
    """Base for failures talking to the summarization API."""


class SummaryRateLimited(SummaryError):
    """The API rejected the request with a rate limit. Retryable."""


class SummaryAuthError(SummaryError):
    """Missing or invalid API credentials."""


class SummaryParseError(SummaryError):
    """The API answered but the response could not be parsed."""


class SummaryTransportError(SummaryError):
    """The API could not be reached or failed with a non-specific error."""
