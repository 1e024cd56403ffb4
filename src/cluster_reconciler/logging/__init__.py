"""Logging configuration for cluster_reconciler."""

from cluster_reconciler.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
