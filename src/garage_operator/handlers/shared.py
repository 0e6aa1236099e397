"""Shared utilities for handlers."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Iterator

from kubernetes import client, config

from .. import metrics
from ..constants import API_GROUP, API_VERSION, KIND_PROVIDER_CONFIG, PLURAL_PROVIDER_CONFIGS
from ..utils.cache import get_cached_object, make_cache_key, set_cached_object
from ..utils.errors import ProviderConfigError
from ..utils.rate_limit import rate_limit_k8s

_object_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
_object_locks_guard = threading.Lock()


@contextmanager
def object_lock(uid: str) -> Iterator[None]:
    """Serialize reconciles of one object across event handlers and the resync timer."""
    with _object_locks_guard:
        lock = _object_locks[uid]
    with lock:
        yield


def release_object_lock(uid: str) -> None:
    """Forget the lock of an object that has been deleted."""
    with _object_locks_guard:
        _object_locks.pop(uid, None)


def load_kube_config() -> None:
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client.

    Returns:
        CustomObjectsApi instance
    """
    load_kube_config()
    return client.CustomObjectsApi()


def get_core_client() -> client.CoreV1Api:
    load_kube_config()
    return client.CoreV1Api()


def get_provider_config_with_cache(api: Any, name: str) -> dict[str, Any]:
    """Get a cluster-scoped ProviderConfig with caching.

    Args:
        api: Kubernetes CustomObjectsApi instance
        name: Name of the ProviderConfig

    Returns:
        ProviderConfig object

    Raises:
        ProviderConfigError: If the ProviderConfig does not exist
        client.exceptions.ApiException: On any other API error
    """
    cache_key = make_cache_key(KIND_PROVIDER_CONFIG, "", name)
    cached = get_cached_object(cache_key)
    if cached is not None:
        metrics.api_call_total.labels(api_type="k8s", operation="get_provider_config", result="cache_hit").inc()
        return cached

    start_time = time.time()
    try:
        obj = rate_limit_k8s(api.get_cluster_custom_object)(
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL_PROVIDER_CONFIGS,
            name=name,
        )
    except client.exceptions.ApiException as e:
        metrics.api_call_total.labels(api_type="k8s", operation="get_provider_config", result="error").inc()
        if e.status == 404:
            raise ProviderConfigError(f"cannot get ProviderConfig {name}: not found") from e
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation="get_provider_config").observe(duration)

    metrics.api_call_total.labels(api_type="k8s", operation="get_provider_config", result="success").inc()
    set_cached_object(cache_key, obj)
    return obj
