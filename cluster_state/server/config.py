"""Configuration management for the cluster state poller.

Node inventory and tuning live in a YAML file; the SSH private key comes from
the environment. Both are loaded per request and passed explicitly to the
aggregator.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import paramiko
import yaml

from ..data.models import NodeTarget
from ..exceptions import SetupError

DEFAULT_KEY_ENV = "SSH_PRIVATE_KEY"
DEFAULT_RESTRICTED_DIRECTORIES = ["/home", "/windows-home"]

# Tried in order; DSSKey is gone from current paramiko releases
KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


@dataclass
class SSHConfig:
    """Timeouts for remote sessions, in seconds."""

    connect_timeout: int = 10
    command_timeout: int = 30
    scan_timeout: int = 120  # du/find over a whole directory tree is slow
    key_env: str = DEFAULT_KEY_ENV


@dataclass
class AccessConfig:
    """User storage scopes that may never be scanned."""

    restricted: List[str] = field(default_factory=lambda: list(DEFAULT_RESTRICTED_DIRECTORIES))


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    url_prefix: str = ""


@dataclass
class Config:
    """Main configuration container."""

    nodes: List[NodeTarget] = field(default_factory=list)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    source_path: Optional[str] = None

    @property
    def head_node(self) -> NodeTarget:
        """The designated node queried for cluster state."""
        if not self.nodes:
            raise SetupError("No nodes configured; the first node is used as head node.")
        return self.nodes[0]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Raises:
            SetupError: If a node entry is malformed.
        """
        try:
            nodes = [NodeTarget.from_dict(n) for n in data.get("nodes") or []]
        except (TypeError, ValueError, AttributeError) as e:
            raise SetupError(f"Invalid node entry: {e}")

        ssh_data = data.get("ssh", {}) or {}
        ssh = SSHConfig(
            connect_timeout=ssh_data.get("connect_timeout", 10),
            command_timeout=ssh_data.get("command_timeout", 30),
            scan_timeout=ssh_data.get("scan_timeout", 120),
            key_env=ssh_data.get("key_env", DEFAULT_KEY_ENV),
        )

        access_data = data.get("access", {}) or {}
        restricted = list(DEFAULT_RESTRICTED_DIRECTORIES)
        for path in access_data.get("restricted", []) or []:
            if path not in restricted:
                restricted.append(path)

        server_data = data.get("server", {}) or {}
        server = ServerConfig(
            host=server_data.get("host", "0.0.0.0"),
            port=server_data.get("port", 8080),
            url_prefix=server_data.get("url_prefix", ""),
        )

        return cls(
            nodes=nodes,
            ssh=ssh,
            access=AccessConfig(restricted=restricted),
            server=server,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load config from YAML file.

        Raises:
            SetupError: If the file is missing, unreadable or not a mapping.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise SetupError(f"Unable to read {path}: {e}")
        if not isinstance(data, dict):
            raise SetupError(f"{path} must contain a mapping, got {type(data).__name__}")
        config = cls.from_dict(data)
        config.source_path = str(path)
        return config

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Load config from the first existing location.

        Checks in order:
        1. Provided path
        2. CLUSTER_STATE_CONFIG env var
        3. ./config/nodes.yaml
        4. ../config/nodes.yaml
        5. ./nodes.yaml

        Raises:
            SetupError: If no configuration file can be found or read.
        """
        if config_path:
            return cls.from_yaml(Path(config_path))

        paths_to_try = []
        if env_path := os.environ.get("CLUSTER_STATE_CONFIG"):
            paths_to_try.append(Path(env_path))
        paths_to_try.extend([
            Path("./config/nodes.yaml"),
            Path("../config/nodes.yaml"),
            Path("./nodes.yaml"),
        ])

        for path in paths_to_try:
            if path.exists():
                return cls.from_yaml(path)

        tried = ", ".join(str(p) for p in paths_to_try)
        raise SetupError(f"No nodes configuration found (tried {tried})")


def unescape_key(raw: str) -> str:
    """Turn literal '\\n' sequences from a single-line env var into newlines."""
    return raw.replace("\\n", "\n")


def parse_private_key(text: str) -> paramiko.PKey:
    """Parse PEM/OpenSSH private key text into a paramiko key.

    Raises:
        SetupError: If no supported key type accepts the text.
    """
    errors = []
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(text))
        except paramiko.PasswordRequiredException:
            raise SetupError("SSH private key is passphrase protected.")
        except (paramiko.SSHException, ValueError) as e:
            errors.append(f"{key_class.__name__}: {e}")
    raise SetupError("Unable to parse SSH private key (" + "; ".join(errors) + ")")


def load_private_key(env_var: str = DEFAULT_KEY_ENV, environ: Optional[Dict[str, str]] = None) -> paramiko.PKey:
    """Load the SSH credential from the environment.

    Raises:
        SetupError: If the variable is missing or the key cannot be parsed.
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(env_var)
    if not raw:
        raise SetupError(f"Missing {env_var} environment variable. Cannot authenticate.")
    return parse_private_key(unescape_key(raw))
