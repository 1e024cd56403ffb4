"""Version information for cluster_reconciler."""

__version__ = "0.3.0"
