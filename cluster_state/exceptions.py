"""Exception hierarchy for the cluster state poller.

Two families with different propagation rules:

- Request errors (SetupError, ScopeForbiddenError) reach the HTTP caller as
  distinct status codes.
- Collector errors (SessionConnectError, CommandError, ParseError) stay inside
  the collector that raised them and turn into an empty result for that source.
"""

from __future__ import annotations

from typing import Optional


# ========== Request Errors ==========


class SetupError(Exception):
    """Configuration or credential material could not be loaded."""

    status_code = 500


class ScopeForbiddenError(PermissionError):
    """The requested user storage scope is restricted."""

    status_code = 403

    def __init__(self, directory: str):
        self.directory = directory
        super().__init__(f"You don't have permission to access {directory}")


# ========== Collector Errors ==========


class CollectorError(Exception):
    """Exception raised when a collector fails to collect data."""

    def __init__(self, collector_name: str, message: str, cause: Optional[Exception] = None):
        self.collector_name = collector_name
        self.cause = cause
        super().__init__(f"[{collector_name}] {message}")


class SessionConnectError(CollectorError):
    """The SSH session to the head node could not be established."""


class CommandError(CollectorError):
    """A remote command timed out, failed, or produced no output."""

    def __init__(
        self,
        collector_name: str,
        message: str,
        cause: Optional[Exception] = None,
        exit_code: Optional[int] = None,
    ):
        self.exit_code = exit_code
        super().__init__(collector_name, message, cause)


class ParseError(CollectorError):
    """Command output did not match the expected grammar."""
