"""HTTP request handlers for the cluster state API.

Provides the snapshot endpoint and a health check. Configuration and the SSH
key are loaded on every request, so a fixed config file or rotated key takes
effect without a restart.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import paramiko

from .access import authorize
from .aggregator import ClusterStateAggregator
from .config import Config, load_private_key
from ..collectors.base import SessionFactory, connect_session
from ..exceptions import ScopeForbiddenError, SetupError

logger = logging.getLogger(__name__)

SetupLoader = Callable[[], Tuple[Config, paramiko.PKey]]

SNAPSHOT_PATHS = {"/api/cluster-state", "/cluster-state"}


def load_request_setup(config_path: Optional[str] = None) -> Tuple[Config, paramiko.PKey]:
    """Load the node inventory and SSH credential for one request.

    Raises:
        SetupError: If either cannot be loaded.
    """
    config = Config.load(config_path)
    credential = load_private_key(config.ssh.key_env)
    config.head_node  # fail here, not inside a poller, when no nodes exist
    return config, credential


def handle_cluster_state(
    volume: Optional[str],
    load_setup: SetupLoader,
    session_factory: SessionFactory = connect_session,
) -> Tuple[HTTPStatus, Dict[str, Any]]:
    """Run one request through setup, the access gate and the aggregator.

    Returns:
        Tuple of (status, JSON body)
    """
    try:
        config, credential = load_setup()
    except SetupError as e:
        logger.error("[api] Setup failed: %s", e)
        return HTTPStatus.INTERNAL_SERVER_ERROR, {
            "error": "Failed to read config or key.",
            "details": str(e),
        }

    try:
        directory = authorize(volume, config.access.restricted)
    except ScopeForbiddenError as e:
        logger.warning("[api] Rejected scope %r: %s", volume, e)
        return HTTPStatus.FORBIDDEN, {"error": str(e)}

    aggregator = ClusterStateAggregator(config, credential, session_factory=session_factory)
    snapshot = aggregator.snapshot([directory])
    return HTTPStatus.OK, snapshot.to_dict()


class ClusterStateRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the cluster state API.

    Serves:
    - GET /api/cluster-state?volume=<home|windows|scratch>
    - GET /api/health
    """

    # Bound per server by make_handler()
    config_path: Optional[str] = None
    url_prefix: str = ""
    session_factory: SessionFactory = staticmethod(connect_session)
    load_setup: Optional[SetupLoader] = None

    def do_GET(self):
        parsed = urlparse(self.path)
        stripped = self._strip_prefix(parsed.path)
        if stripped is None:
            self._send_json({"error": "Invalid prefix"}, status_code=HTTPStatus.NOT_FOUND)
            return

        if stripped in SNAPSHOT_PATHS:
            return self._handle_cluster_state(parse_qs(parsed.query))
        if stripped == "/api/health":
            return self._send_json({"status": "ok"})

        self._send_json({"error": "Unknown endpoint"}, status_code=HTTPStatus.NOT_FOUND)

    def do_OPTIONS(self):
        self.send_response(HTTPStatus.NO_CONTENT)
        self._send_cors_headers()
        self.send_header("Access-Control-Allow-Methods", "GET,OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    # --- API Handlers ---

    def _handle_cluster_state(self, query: Dict[str, list]):
        volume = (query.get("volume") or [None])[0]
        logger.info("[api] Received request for cluster state (volume=%s)", volume)
        load_setup = self.load_setup or (lambda: load_request_setup(self.config_path))
        status, body = handle_cluster_state(volume, load_setup, self.session_factory)
        logger.info("[api] Sending %d response", status)
        self._send_json(body, status_code=status)

    # --- Helper Methods ---

    def _send_json(self, data: Any, *, status_code: HTTPStatus = HTTPStatus.OK):
        body = json.dumps(data).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store, max-age=0")
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _send_cors_headers(self):
        self.send_header("Access-Control-Allow-Origin", "*")

    def _strip_prefix(self, path: str) -> Optional[str]:
        norm_prefix = (self.url_prefix or "").rstrip("/")
        if not norm_prefix:
            return path or "/"
        if not norm_prefix.startswith("/"):
            norm_prefix = f"/{norm_prefix}"
        if not path.startswith(norm_prefix):
            return None
        stripped = path[len(norm_prefix):] or "/"
        if not stripped.startswith("/"):
            stripped = "/" + stripped
        return stripped

    def log_message(self, format, *args):
        logger.debug("[http] %s - %s", self.address_string(), format % args)


def make_handler(
    *,
    config_path: Optional[str] = None,
    url_prefix: str = "",
    load_setup: Optional[SetupLoader] = None,
    session_factory: SessionFactory = connect_session,
) -> type:
    """Create a handler class bound to one server's settings."""
    return type(
        "BoundClusterStateRequestHandler",
        (ClusterStateRequestHandler,),
        {
            "config_path": config_path,
            "url_prefix": url_prefix,
            "load_setup": staticmethod(load_setup) if load_setup else None,
            "session_factory": staticmethod(session_factory),
        },
    )
