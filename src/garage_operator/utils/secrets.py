"""Utilities for managing Kubernetes secrets."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from kubernetes import client

from ..constants import CONTROLLER_NAME, FIELD_MANAGER, LABEL_MANAGED_BY, LABEL_RESOURCE_TYPE
from .rate_limit import rate_limit_k8s


def _decode_value(value: str | bytes) -> str:
    # Handle both string and bytes (different versions of kubernetes client)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return value


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        ValueError: If secret or key not found
    """
    try:
        secret = rate_limit_k8s(api.read_namespaced_secret)(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise ValueError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise

    data = secret.data or {}
    if key not in data:
        raise ValueError(f"Key '{key}' not found in secret '{secret_name}'")
    return _decode_value(data[key])


def owner_reference(kind: str, api_version: str, name: str, uid: str) -> dict[str, Any]:
    """Build an owner reference so the secret is garbage collected with its owner."""
    return {
        "apiVersion": api_version,
        "kind": kind,
        "name": name,
        "uid": uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def publish_connection_details(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    details: dict[str, bytes],
    owner_references: list[dict[str, Any]] | None = None,
    resource_type: str = "key",
) -> bool:
    """Merge connection details into a secret, creating it if needed.

    Empty values are skipped so an issued secret is never overwritten with an
    absent one. Keys already in the secret but not in ``details`` are kept.

    Returns:
        True if anything was written
    """
    data = {k: base64.b64encode(v).decode("ascii") for k, v in details.items() if v}
    if not data:
        return False

    try:
        rate_limit_k8s(api.read_namespaced_secret)(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status != 404:
            raise
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=secret_name,
                namespace=namespace,
                owner_references=owner_references or [],
                labels={
                    LABEL_MANAGED_BY: CONTROLLER_NAME,
                    LABEL_RESOURCE_TYPE: resource_type,
                },
            ),
            type="Opaque",
            data=data,
        )
        rate_limit_k8s(api.create_namespaced_secret)(
            namespace=namespace,
            body=secret,
            field_manager=FIELD_MANAGER,
        )
        return True

    # A strategic merge patch on data only touches the listed keys
    rate_limit_k8s(api.patch_namespaced_secret)(
        name=secret_name,
        namespace=namespace,
        body={"data": data},
        field_manager=FIELD_MANAGER,
    )
    return True
