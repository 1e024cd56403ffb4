"""Declarative apply and reconciliation engine for Kubernetes child resources."""

from cluster_reconciler.__version__ import __version__

__all__ = ["__version__"]
