"""Tests for configuration and credential loading."""

import io

import paramiko
import pytest

from cluster_state.exceptions import SetupError
from cluster_state.server.config import (
    DEFAULT_RESTRICTED_DIRECTORIES,
    Config,
    load_private_key,
    parse_private_key,
    unescape_key,
)


@pytest.fixture(scope="module")
def rsa_key_text():
    key = paramiko.RSAKey.generate(2048)
    buf = io.StringIO()
    key.write_private_key(buf)
    return buf.getvalue()


class TestConfig:
    def test_default_config(self):
        config = Config()
        assert config.nodes == []
        assert config.ssh.connect_timeout == 10
        assert config.ssh.command_timeout == 30
        assert config.access.restricted == DEFAULT_RESTRICTED_DIRECTORIES
        assert config.server.port == 8080

    def test_from_dict(self):
        data = {
            "nodes": [
                {"name": "head01", "host": "10.0.0.10", "port": 2222, "user": "monitor"},
                {"name": "gpu01", "host": "10.0.0.21"},
            ],
            "ssh": {"command_timeout": 15, "scan_timeout": 300},
            "access": {"restricted": ["/projects/private"]},
            "server": {"port": 9000, "url_prefix": "/dash"},
        }
        config = Config.from_dict(data)

        assert config.head_node.name == "head01"
        assert config.head_node.port == 2222
        assert config.nodes[1].port == 22
        assert config.nodes[1].user == "root"
        assert config.ssh.command_timeout == 15
        assert config.ssh.scan_timeout == 300
        assert config.ssh.connect_timeout == 10
        assert config.access.restricted == ["/home", "/windows-home", "/projects/private"]
        assert config.server.port == 9000
        assert config.server.url_prefix == "/dash"

    def test_restricted_defaults_cannot_be_removed(self):
        config = Config.from_dict({"access": {"restricted": []}})
        assert "/home" in config.access.restricted
        assert "/windows-home" in config.access.restricted

    def test_no_nodes(self):
        config = Config.from_dict({"nodes": []})
        with pytest.raises(SetupError):
            config.head_node

    def test_node_without_host(self):
        with pytest.raises(SetupError):
            Config.from_dict({"nodes": [{"name": "head01"}]})

    def test_from_yaml(self, tmp_path):
        yaml_content = """
nodes:
  - name: head01
    host: head01.cluster.local
    user: monitor
ssh:
  connect_timeout: 4
"""
        config_file = tmp_path / "nodes.yaml"
        config_file.write_text(yaml_content)

        config = Config.from_yaml(config_file)

        assert config.head_node.host == "head01.cluster.local"
        assert config.ssh.connect_timeout == 4
        assert config.source_path == str(config_file)

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(SetupError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_from_yaml_invalid(self, tmp_path):
        config_file = tmp_path / "nodes.yaml"
        config_file.write_text("nodes: [unclosed\n")
        with pytest.raises(SetupError):
            Config.from_yaml(config_file)

    def test_from_yaml_not_a_mapping(self, tmp_path):
        config_file = tmp_path / "nodes.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(SetupError):
            Config.from_yaml(config_file)

    def test_load_from_env(self, tmp_path, monkeypatch):
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("nodes:\n  - host: 10.1.1.1\n")
        monkeypatch.setenv("CLUSTER_STATE_CONFIG", str(config_file))

        config = Config.load()
        assert config.head_node.host == "10.1.1.1"
        assert config.head_node.name == "10.1.1.1"

    def test_load_from_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "nodes.yaml").write_text("nodes:\n  - host: 10.2.2.2\n")
        monkeypatch.delenv("CLUSTER_STATE_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)

        assert Config.load().head_node.host == "10.2.2.2"

    def test_load_nothing_found(self, tmp_path, monkeypatch):
        workdir = tmp_path / "a" / "b"
        workdir.mkdir(parents=True)
        monkeypatch.delenv("CLUSTER_STATE_CONFIG", raising=False)
        monkeypatch.chdir(workdir)

        with pytest.raises(SetupError):
            Config.load()

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(SetupError):
            Config.load(str(tmp_path / "nope.yaml"))


class TestPrivateKey:
    def test_unescape_key(self):
        assert unescape_key("-----BEGIN-----\\nabc\\n-----END-----") == "-----BEGIN-----\nabc\n-----END-----"

    def test_load_escaped_key(self, rsa_key_text):
        escaped = rsa_key_text.replace("\n", "\\n")
        key = load_private_key(environ={"SSH_PRIVATE_KEY": escaped})
        assert isinstance(key, paramiko.RSAKey)

    def test_load_custom_env_var(self, rsa_key_text):
        key = load_private_key("CLUSTER_KEY", environ={"CLUSTER_KEY": rsa_key_text})
        assert isinstance(key, paramiko.RSAKey)

    def test_missing_key(self):
        with pytest.raises(SetupError) as exc_info:
            load_private_key(environ={})
        assert "SSH_PRIVATE_KEY" in str(exc_info.value)

    def test_garbage_key(self):
        with pytest.raises(SetupError):
            parse_private_key("this is not a key")
