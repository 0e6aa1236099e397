"""Kubernetes operator reconciling Garage buckets, keys and key access grants."""

__version__ = "0.1.0"
