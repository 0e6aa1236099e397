"""Tests for shared handler utilities."""

from __future__ import annotations

import threading
import time
from unittest.mock import Mock, patch

import pytest
from kubernetes import client

from garage_operator.constants import API_GROUP, API_VERSION, PLURAL_PROVIDER_CONFIGS
from garage_operator.handlers.shared import (
    get_k8s_client,
    get_provider_config_with_cache,
    object_lock,
    release_object_lock,
)
from garage_operator.utils.cache import invalidate_cache
from garage_operator.utils.errors import ProviderConfigError


class TestGetProviderConfigWithCache:
    """Test cases for get_provider_config_with_cache function."""

    def setup_method(self):
        invalidate_cache()

    @patch("garage_operator.handlers.shared.metrics")
    def test_fetches_then_caches(self, mock_metrics):
        mock_api = Mock()
        provider_config = {"metadata": {"name": "default"}, "spec": {"endpoint": "http://garage:3903"}}
        mock_api.get_cluster_custom_object.return_value = provider_config

        first = get_provider_config_with_cache(mock_api, "default")
        second = get_provider_config_with_cache(mock_api, "default")

        assert first == provider_config
        assert second == provider_config
        mock_api.get_cluster_custom_object.assert_called_once_with(
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL_PROVIDER_CONFIGS,
            name="default",
        )
        mock_metrics.api_call_total.labels.assert_called_with(
            api_type="k8s", operation="get_provider_config", result="cache_hit"
        )

    @patch("garage_operator.handlers.shared.metrics")
    def test_not_found(self, mock_metrics):
        mock_api = Mock()
        mock_api.get_cluster_custom_object.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ProviderConfigError, match="cannot get ProviderConfig missing"):
            get_provider_config_with_cache(mock_api, "missing")

        mock_metrics.api_call_total.labels.assert_called_with(
            api_type="k8s", operation="get_provider_config", result="error"
        )

    @patch("garage_operator.handlers.shared.metrics")
    def test_other_errors_propagate(self, mock_metrics):
        mock_api = Mock()
        mock_api.get_cluster_custom_object.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            get_provider_config_with_cache(mock_api, "default")


class TestObjectLock:
    """Test cases for per-object serialization."""

    def test_serializes_same_uid(self):
        order: list[str] = []

        def worker(tag: str) -> None:
            with object_lock("uid-1"):
                order.append(f"{tag}-start")
                time.sleep(0.05)
                order.append(f"{tag}-end")

        threads = [threading.Thread(target=worker, args=(t,)) for t in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert order[0].endswith("start") and order[1].endswith("end")
        assert order[0][0] == order[1][0]
        release_object_lock("uid-1")

    def test_different_uids_do_not_block(self):
        with object_lock("uid-a"):
            acquired = threading.Event()

            def other() -> None:
                with object_lock("uid-b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            t.join(timeout=1)

        assert acquired.is_set()


class TestGetK8sClient:
    """Test cases for get_k8s_client function."""

    @patch("garage_operator.handlers.shared.client.CustomObjectsApi")
    @patch("kubernetes.config.load_incluster_config")
    def test_get_k8s_client_incluster(self, mock_load_incluster, mock_api):
        mock_api.return_value = Mock()

        assert get_k8s_client() == mock_api.return_value
        mock_load_incluster.assert_called_once()

    @patch("garage_operator.handlers.shared.client.CustomObjectsApi")
    @patch("kubernetes.config.load_kube_config")
    @patch("kubernetes.config.load_incluster_config")
    def test_get_k8s_client_kubeconfig(self, mock_load_incluster, mock_load_kube, mock_api):
        from kubernetes.config import ConfigException

        mock_load_incluster.side_effect = ConfigException("Not in cluster")

        get_k8s_client()

        mock_load_kube.assert_called_once()
