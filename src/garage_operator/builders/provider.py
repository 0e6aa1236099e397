"""Builder for Garage clients from ProviderConfig resources."""

from __future__ import annotations

import json
from typing import Any

from kubernetes import client, config

from ..services.garage.client import DEFAULT_TIMEOUT_SECONDS, GarageClient
from ..utils.errors import ProviderConfigError
from ..utils.secrets import get_secret_value


def load_credentials(raw: str) -> dict[str, str]:
    """Parse the credentials document ``{"endpoint": ..., "adminToken": ...}``."""
    try:
        creds = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProviderConfigError(f"cannot unmarshal credentials: {e}") from e
    if not isinstance(creds, dict):
        raise ProviderConfigError("cannot unmarshal credentials: expected a JSON object")
    return creds


def create_client_from_provider_config(
    spec: dict[str, Any],
    meta: dict[str, Any],
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> GarageClient:
    """Create a Garage client from a ProviderConfig spec.

    The admin token and endpoint are read from the secret named in
    ``credentials.secretRef``. ``spec.endpoint`` overrides the endpoint
    stored in the secret.

    Args:
        spec: ProviderConfig spec
        meta: ProviderConfig metadata
        timeout_seconds: Timeout for every Garage API call

    Returns:
        Garage client; the caller is responsible for closing it

    Raises:
        ProviderConfigError: If credentials are missing or incomplete
    """
    secret_ref = (spec.get("credentials") or {}).get("secretRef") or {}
    secret_name = secret_ref.get("name")
    secret_key = secret_ref.get("key")
    if not secret_name or not secret_key:
        raise ProviderConfigError("credentials.secretRef.name and credentials.secretRef.key are required")
    secret_ns = secret_ref.get("namespace") or meta.get("namespace") or "default"

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    try:
        raw = get_secret_value(client.CoreV1Api(), secret_ns, secret_name, secret_key)
    except ValueError as e:
        raise ProviderConfigError(f"cannot get credentials: {e}") from e

    creds = load_credentials(raw)
    endpoint = spec.get("endpoint") or creds.get("endpoint")
    admin_token = creds.get("adminToken")
    if not endpoint:
        raise ProviderConfigError("no Garage endpoint in ProviderConfig spec or credentials")
    if not admin_token:
        raise ProviderConfigError("credentials are missing adminToken")

    return GarageClient(endpoint=endpoint, admin_token=admin_token, timeout_seconds=timeout_seconds)
