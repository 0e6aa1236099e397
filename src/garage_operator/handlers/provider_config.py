"""Handler for ProviderConfig CRD."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

import kopf

from .. import metrics
from ..builders.provider import create_client_from_provider_config
from ..constants import API_GROUP_VERSION, KIND_PROVIDER_CONFIG
from ..tracing import trace_span
from ..utils.cache import invalidate_cache, make_cache_key
from ..utils.conditions import (
    set_auth_valid_condition,
    set_endpoint_reachable_condition,
    set_ready_condition,
)
from ..utils.errors import sanitize_exception
from .base import BaseHandler

HEALTH_CHECK_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "60"))


class ProviderConfigHandler(BaseHandler):
    """Handler for ProviderConfig resources."""

    def __init__(self):
        super().__init__(KIND_PROVIDER_CONFIG)

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Check that credentials load and the Garage endpoint answers."""
        name = meta.get("name", "unknown")
        invalidate_cache(make_cache_key(KIND_PROVIDER_CONFIG, "", name))
        conditions = list(status.get("conditions", []))

        with trace_span("reconcile_provider_config", kind=KIND_PROVIDER_CONFIG, attributes={"provider.name": name}):
            garage = None
            try:
                garage = create_client_from_provider_config(spec, meta)
                auth_valid = True
                auth_message = "Credentials loaded"
            except Exception as e:
                auth_valid = False
                sanitized_error = sanitize_exception(e)
                auth_message = f"Cannot load credentials: {sanitized_error}"
                metrics.error_total.labels(kind=KIND_PROVIDER_CONFIG, error_type=type(e).__name__).inc()
                self.log_error(meta, auth_message, error=e, reason="AuthFailed")

            conditions = set_auth_valid_condition(conditions, auth_valid, auth_message)

            connected = False
            if garage is None:
                endpoint_message = "Cannot test connectivity without credentials"
            else:
                try:
                    garage.check_health()
                    connected = True
                    endpoint_message = "Endpoint is reachable"
                    metrics.provider_connectivity_total.labels(provider=name, status="connected").inc()
                except Exception as e:
                    sanitized_error = sanitize_exception(e)
                    endpoint_message = f"Connectivity test failed: {sanitized_error}"
                    metrics.error_total.labels(kind=KIND_PROVIDER_CONFIG, error_type=type(e).__name__).inc()
                    metrics.provider_connectivity_total.labels(provider=name, status="error").inc()
                    self.log_warning(meta, endpoint_message, reason="ConnectivityFailed")
                finally:
                    garage.close()

            conditions = set_endpoint_reachable_condition(conditions, connected, endpoint_message)

            ready = auth_valid and connected
            conditions = set_ready_condition(
                conditions, ready, "ProviderConfig is ready" if ready else "ProviderConfig is not ready"
            )

            status_data = {
                "connected": connected,
                "lastConnectTime": datetime.now(timezone.utc).isoformat() if connected else status.get("lastConnectTime"),
                "conditions": conditions,
            }
            self.update_resource_status(patch, meta, ready, status_data)

    def delete(self, meta: dict[str, Any]) -> None:
        invalidate_cache(make_cache_key(KIND_PROVIDER_CONFIG, "", meta.get("name", "")))
        self.log_info(meta, "ProviderConfig is being deleted", event="deletion", reason="Deletion")


# Global handler instance
_handler = ProviderConfigHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.update(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.timer(API_GROUP_VERSION, KIND_PROVIDER_CONFIG, interval=HEALTH_CHECK_INTERVAL_SECONDS)
def handle_provider_config(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle ProviderConfig resource reconciliation."""
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(spec, meta, status, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_PROVIDER_CONFIG, optional=True)
def handle_provider_config_delete(meta: dict[str, Any], **kwargs: Any) -> None:
    """Drop the cached ProviderConfig."""
    _handler.delete(meta)
