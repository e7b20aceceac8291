"""SSH session to a cluster node.

Wraps a paramiko client so collectors can run one command at a time against
the head node and always release the connection afterwards.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Optional

import paramiko

from ..data.models import NodeTarget
from ..exceptions import CommandError, SessionConnectError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Exit status and captured output of one remote command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RemoteSession:
    """A single authenticated SSH connection to one node.

    Usage:
        with RemoteSession.open(target, pkey) as session:
            result = session.run("sinfo --noheader", timeout=30)
    """

    def __init__(self, target: NodeTarget, client: Optional[paramiko.SSHClient] = None):
        self.target = target
        self._client = client

    @classmethod
    def open(
        cls,
        target: NodeTarget,
        credential: paramiko.PKey,
        connect_timeout: float = 10,
    ) -> "RemoteSession":
        """Connect to the target with the supplied private key.

        Raises:
            SessionConnectError: If the connection or authentication fails.
        """
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                target.host,
                port=target.port,
                username=target.user,
                pkey=credential,
                timeout=connect_timeout,
                banner_timeout=connect_timeout,
                auth_timeout=connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise SessionConnectError(
                "ssh", f"could not connect to {target.name} ({target.host}:{target.port}): {e}", e
            )
        logger.debug("[ssh] connected to %s (%s:%s)", target.name, target.host, target.port)
        return cls(target, client)

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def run(self, command: str, timeout: float = 30) -> CommandResult:
        """Execute a command and wait for it to finish.

        A timeout closes the session before CommandError is raised, so the
        remote channel is never left hanging.

        Raises:
            CommandError: On timeout, transport fault, or a closed session.
        """
        if self._client is None:
            raise CommandError("ssh", f"session to {self.target.name} is closed")
        try:
            _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except socket.timeout as e:
            self.close()
            raise CommandError("ssh", f"command timed out after {timeout}s on {self.target.name}", e)
        except (paramiko.SSHException, OSError, EOFError) as e:
            self.close()
            raise CommandError("ssh", f"transport error on {self.target.name}: {e}", e)
        return CommandResult(exit_code=exit_code, stdout=out, stderr=err)

    def close(self) -> None:
        """Tear down the connection. Safe to call more than once."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.close()
        except Exception as e:
            logger.debug("[ssh] error while closing session to %s: %s", self.target.name, e)

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
