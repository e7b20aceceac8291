"""Cluster state poller - head node telemetry over SSH."""

__version__ = "0.1.0"
