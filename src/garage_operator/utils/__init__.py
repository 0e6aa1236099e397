"""Utility functions for the Garage Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    set_reconcile_error_condition,
    set_reconcile_success_condition,
    update_condition,
)
from .events import emit_event
from .rate_limit import rate_limit_garage, rate_limit_k8s
from .secrets import get_secret_value, publish_connection_details

__all__ = [
    "update_condition",
    "set_reconcile_success_condition",
    "set_reconcile_error_condition",
    "emit_event",
    "get_secret_value",
    "publish_connection_details",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "make_cache_key",
    "rate_limit_k8s",
    "rate_limit_garage",
]
