"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64
import json
from unittest.mock import Mock

import pytest
from kubernetes import client

from garage_operator.constants import LABEL_MANAGED_BY
from garage_operator.utils.secrets import (
    get_secret_value,
    owner_reference,
    publish_connection_details,
)


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("utf-8")


class TestGetSecretValue:
    """Test cases for get_secret_value function."""

    def test_decodes_base64_value(self):
        mock_api = Mock()
        creds = json.dumps({"endpoint": "http://garage:3903", "adminToken": "t"})
        mock_api.read_namespaced_secret.return_value = Mock(data={"credentials": b64(creds)})

        result = get_secret_value(mock_api, "garage-system", "garage-admin", "credentials")

        assert json.loads(result)["adminToken"] == "t"
        mock_api.read_namespaced_secret.assert_called_once_with(name="garage-admin", namespace="garage-system")

    def test_bytes_value(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = Mock(data={"credentials": b"raw"})

        assert get_secret_value(mock_api, "default", "s", "credentials") == "raw"

    def test_key_not_found(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = Mock(data={"other": b64("x")})

        with pytest.raises(ValueError, match="Key 'credentials' not found"):
            get_secret_value(mock_api, "default", "s", "credentials")

    def test_secret_not_found(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ValueError, match="Secret 's' not found"):
            get_secret_value(mock_api, "default", "s", "credentials")

    def test_other_api_error_propagates(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            get_secret_value(mock_api, "default", "s", "credentials")


class TestPublishConnectionDetails:
    """Test cases for publish_connection_details function."""

    def test_creates_secret_when_missing(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)
        owner = owner_reference("Key", "garage.cloud37.dev/v1alpha1", "app-key", "uid-1")

        written = publish_connection_details(
            mock_api,
            "default",
            "app-key-credentials",
            {"accessKeyId": b"GK1", "secretAccessKey": b"s3cr3t"},
            owner_references=[owner],
        )

        assert written
        body = mock_api.create_namespaced_secret.call_args.kwargs["body"]
        assert body.metadata.name == "app-key-credentials"
        assert body.metadata.owner_references == [owner]
        assert body.metadata.labels[LABEL_MANAGED_BY] == "garage-operator"
        assert body.data == {"accessKeyId": b64("GK1"), "secretAccessKey": b64("s3cr3t")}
        mock_api.patch_namespaced_secret.assert_not_called()

    def test_merges_into_existing_secret(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = Mock(data={"secretAccessKey": b64("s3cr3t")})

        publish_connection_details(mock_api, "default", "app-key-credentials", {"accessKeyId": b"GK1"})

        mock_api.patch_namespaced_secret.assert_called_once()
        kwargs = mock_api.patch_namespaced_secret.call_args.kwargs
        assert kwargs["body"] == {"data": {"accessKeyId": b64("GK1")}}
        mock_api.create_namespaced_secret.assert_not_called()

    def test_empty_values_never_written(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = Mock(data={})

        publish_connection_details(
            mock_api, "default", "app-key-credentials", {"accessKeyId": b"GK1", "secretAccessKey": b""}
        )

        body = mock_api.patch_namespaced_secret.call_args.kwargs["body"]
        assert "secretAccessKey" not in body["data"]

    def test_nothing_to_publish(self):
        mock_api = Mock()

        assert not publish_connection_details(mock_api, "default", "s", {"secretAccessKey": b""})
        assert mock_api.method_calls == []


class TestOwnerReference:
    """Test cases for owner_reference function."""

    def test_owner_reference(self):
        ref = owner_reference("Key", "garage.cloud37.dev/v1alpha1", "app-key", "uid-1")

        assert ref["kind"] == "Key"
        assert ref["uid"] == "uid-1"
        assert ref["controller"] is True
