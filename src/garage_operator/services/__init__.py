"""Clients for external services managed by the operator."""
