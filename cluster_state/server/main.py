#!/usr/bin/env python3
"""
Cluster State Poller - Main entry point.

Serves the cluster state API, or runs a single poll cycle and prints the
snapshot.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from http.server import ThreadingHTTPServer

from .access import authorize
from .aggregator import ClusterStateAggregator
from .config import Config
from .routes import load_request_setup, make_handler
from ..exceptions import ScopeForbiddenError, SetupError
from ..logging_config import setup_logging

logger = logging.getLogger(__name__)

EXIT_SETUP_ERROR = 1
EXIT_FORBIDDEN = 2


def run_server(args) -> None:
    """Run the API server."""
    try:
        config = Config.load(args.config)
    except SetupError as e:
        # the server still starts; every request will report the problem
        logger.warning("[config] %s", e)
        config = Config()
    else:
        logger.info("[config] Loaded %s (head node: %s)", config.source_path, config.nodes[0].name if config.nodes else None)

    # Override config with CLI args
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.url_prefix:
        config.server.url_prefix = args.url_prefix

    handler = make_handler(config_path=args.config, url_prefix=config.server.url_prefix)
    server = ThreadingHTTPServer((config.server.host, config.server.port), handler)

    logger.info("[server] Serving on http://%s:%s", config.server.host, config.server.port)
    if config.server.url_prefix:
        logger.info("[server] URL prefix: %s", config.server.url_prefix)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("[server] Shutting down...")
    finally:
        server.server_close()


def run_snapshot(args) -> int:
    """Poll once and print the snapshot JSON to stdout."""
    try:
        config, credential = load_request_setup(args.config)
        directory = authorize(args.volume, config.access.restricted)
    except SetupError as e:
        logger.error("[snapshot] %s", e)
        return EXIT_SETUP_ERROR
    except ScopeForbiddenError as e:
        logger.error("[snapshot] %s", e)
        return EXIT_FORBIDDEN

    snapshot = ClusterStateAggregator(config, credential).snapshot([directory])
    json.dump(snapshot.to_dict(), sys.stdout, indent=2 if args.pretty else None)
    sys.stdout.write("\n")
    return 0


def _common_options(suppress: bool) -> argparse.ArgumentParser:
    """Options accepted both before and after the subcommand.

    Subcommand copies use SUPPRESS so they only override when given.
    """
    common = argparse.ArgumentParser(add_help=False)

    def default(value):
        return argparse.SUPPRESS if suppress else value

    common.add_argument("--config", type=str, default=default(None), help="Path to nodes YAML file")
    common.add_argument(
        "--log-level",
        default=default("INFO"),
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level",
    )
    common.add_argument("--log-file", type=str, default=default(None), help="Also write logs to this file")
    return common


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Cluster head node state poller",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        parents=[_common_options(suppress=False)],
    )
    sub_common = _common_options(suppress=True)

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API (default)", parents=[sub_common])
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port to listen on")
    serve.add_argument("--url-prefix", default="", help="Path prefix for reverse proxy setup")

    snap = subparsers.add_parser("snapshot", help="Poll once and print the snapshot", parents=[sub_common])
    snap.add_argument(
        "--volume",
        choices=("home", "windows", "scratch"),
        default="scratch",
        help="User storage scope to scan",
    )
    snap.add_argument("--pretty", action="store_true", help="Indent the JSON output")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "serve"
        args.host = None
        args.port = None
        args.url_prefix = ""
    return args


def main(argv=None):
    """Entry point for the cluster-state command."""
    args = parse_args(argv)
    if args.command == "snapshot":
        # stdout carries the snapshot JSON
        setup_logging(args.log_level, log_file=args.log_file, stream=sys.stderr)
        sys.exit(run_snapshot(args))
    setup_logging(args.log_level, log_file=args.log_file)
    run_server(args)


if __name__ == "__main__":
    main()
