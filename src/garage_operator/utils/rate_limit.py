"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_GARAGE_RATE_LIMIT_PER_SECOND = float(os.getenv("GARAGE_RATE_LIMIT_PER_SECOND", "5.0"))

# Track last call times
_k8s_last_call_time: float = 0.0
_garage_last_call_time: float = 0.0
_lock = threading.Lock()


def _wait_for_slot(last_call_time: float, rate_per_second: float) -> float:
    """Sleep until the minimum interval since ``last_call_time`` has elapsed and return the new call time."""
    min_interval = 1.0 / rate_per_second
    time_since_last_call = time.time() - last_call_time
    if time_since_last_call < min_interval:
        time.sleep(min_interval - time_since_last_call)
    return time.time()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Spaces calls out so the operator does not overwhelm the API server. It
    never retries; failed calls surface to the caller.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_last_call_time
        with _lock:
            _k8s_last_call_time = _wait_for_slot(_k8s_last_call_time, _K8S_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_garage(func: _F) -> _F:
    """Decorator to rate limit Garage Admin API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _garage_last_call_time
        with _lock:
            _garage_last_call_time = _wait_for_slot(_garage_last_call_time, _GARAGE_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore
