"""Base collector interface for head node data sources."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List

import paramiko

from .ssh import CommandResult, RemoteSession
from ..data.models import NodeTarget
from ..exceptions import CollectorError, CommandError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[NodeTarget, paramiko.PKey, float], RemoteSession]


def connect_session(target: NodeTarget, credential: paramiko.PKey, connect_timeout: float) -> RemoteSession:
    """Default session factory: a real SSH connection."""
    return RemoteSession.open(target, credential, connect_timeout=connect_timeout)


class BaseCollector(ABC):
    """Abstract base class for head node collectors.

    Each collector owns one remote session for the duration of a poll, runs
    its command(s) and parses the output into records. `collect` raises on
    failure; `poll` is the failure-isolation boundary used by the aggregator.
    """

    def __init__(
        self,
        target: NodeTarget,
        credential: paramiko.PKey,
        *,
        connect_timeout: float = 10,
        command_timeout: float = 30,
        session_factory: SessionFactory = connect_session,
    ):
        self.target = target
        self.credential = credential
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.session_factory = session_factory

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this collector.

        Returns:
            A short, lowercase identifier (e.g., 'slurm', 'storage')
        """
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for log and status output."""
        pass

    @abstractmethod
    def collect(self) -> List[Any]:
        """Fetch current records from the head node.

        Returns:
            List of parsed records, possibly empty.

        Raises:
            CollectorError: If connecting, running or parsing fails.
        """
        pass

    def poll(self) -> List[Any]:
        """Collect records, converting any failure into an empty list."""
        try:
            records = self.collect()
        except CollectorError as e:
            logger.error("[%s] Failed to poll %s from %s: %s", self.name, self.display_name, self.target.name, e)
            return []
        except Exception as e:
            logger.exception("[%s] Unexpected error polling %s: %s", self.name, self.target.name, e)
            return []
        logger.info("[%s] Successfully polled %s (%d rows)", self.name, self.display_name, len(records))
        return records

    def open_session(self) -> RemoteSession:
        return self.session_factory(self.target, self.credential, self.connect_timeout)

    def run_checked(self, session: RemoteSession, command: str, timeout: float) -> CommandResult:
        """Run a command, treating a non-zero exit or empty stdout as failure.

        Raises:
            CommandError: If the command fails or prints nothing.
        """
        result = session.run(command, timeout=timeout)
        if not result.ok:
            detail = result.stderr.strip() or "no stderr"
            raise CommandError(
                self.name,
                f"command exited with {result.exit_code}: {detail}",
                exit_code=result.exit_code,
            )
        if not result.stdout.strip():
            raise CommandError(self.name, "command produced no output", exit_code=result.exit_code)
        return result
