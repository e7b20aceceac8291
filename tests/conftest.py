"""Pytest configuration and shared fixtures."""

import threading

import pytest
from unittest.mock import MagicMock

from cluster_state.collectors.ssh import CommandResult
from cluster_state.data.models import NodeTarget
from cluster_state.exceptions import SessionConnectError
from cluster_state.server.config import Config


class FakeSession:
    """Stands in for RemoteSession; answers commands by substring match."""

    def __init__(self, responses, calls):
        self.responses = responses
        self.calls = calls
        self.is_open = True

    def run(self, command, timeout=30):
        self.calls.append(command)
        for needle, outcome in self.responses:
            if needle in command:
                if isinstance(outcome, Exception):
                    self.close()
                    raise outcome
                return outcome
        return CommandResult(exit_code=127, stdout="", stderr="command not found")

    def close(self):
        self.is_open = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeSessionFactory:
    """Session factory that records every open and every command."""

    def __init__(self, responses=None, connect_error=None, barrier=None):
        self.responses = list(responses or [])
        self.connect_error = connect_error
        self.barrier = barrier
        self.calls = []
        self.sessions = []
        self._lock = threading.Lock()

    def __call__(self, target, credential, connect_timeout):
        if self.barrier is not None:
            self.barrier.wait()
        if self.connect_error is not None:
            raise self.connect_error
        session = FakeSession(self.responses, self.calls)
        with self._lock:
            self.sessions.append(session)
        return session

    @property
    def opened(self):
        return len(self.sessions)


@pytest.fixture
def head_node():
    return NodeTarget(name="head01", host="10.0.0.10", port=22, user="monitor")


@pytest.fixture
def credential():
    return MagicMock(name="pkey")


@pytest.fixture
def config(head_node):
    return Config(nodes=[head_node])


@pytest.fixture
def sample_sinfo_output():
    """Sample output from the sinfo partition listing."""
    return (
        "         cpu    10     4     6      32768  gpu:2\n"
        "        gpu*    64    32    32     515000  gpu:a100:4(S:0-1)\n"
        "broken 12\n"
        "       debug     0     0     0       1024  (null)\n"
    )


@pytest.fixture
def sample_df_output():
    """Sample output from df -hT filtered to network filesystems."""
    return (
        "10.0.0.5:/export/scratch nfs4  100T   87T   13T  87% /scratch\n"
        "10.0.0.1:6789:/          ceph  2.0T  512G  1.5T  25% /mnt/ceph\n"
        "tmpfs tmpfs 1G\n"
    )


@pytest.fixture
def sample_scan_output():
    """Sample output from the per-user directory scan script."""
    return (
        "[\n"
        '{"username": "alice", "used": "1.5G", "files": 120}\n'
        ",\n"
        '{"username": "bob", "used": "2T", "files": 3}\n'
        "]\n"
    )


@pytest.fixture
def healthy_factory(sample_sinfo_output, sample_df_output, sample_scan_output):
    """Session factory where every command succeeds."""
    return FakeSessionFactory(
        responses=[
            ("sinfo", CommandResult(0, sample_sinfo_output, "")),
            ("df -hT", CommandResult(0, sample_df_output, "")),
            ("du -sh", CommandResult(0, sample_scan_output, "")),
        ]
    )


@pytest.fixture
def unreachable_factory():
    """Session factory where the head node cannot be reached."""
    return FakeSessionFactory(
        connect_error=SessionConnectError("ssh", "could not connect to head01: timed out")
    )


@pytest.fixture
def fake_factory():
    """The FakeSessionFactory class, for tests that need custom responses."""
    return FakeSessionFactory
