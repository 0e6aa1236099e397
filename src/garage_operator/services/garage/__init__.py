"""Garage Admin API client."""

from .client import GarageAPIError, GarageClient

__all__ = ["GarageAPIError", "GarageClient"]
