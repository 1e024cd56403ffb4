"""Reconciliation services built on the integrations layer."""
