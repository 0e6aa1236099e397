"""Base handler classes and the managed-resource reconciliation engine."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

import kopf
from kubernetes import client

from .. import metrics
from ..builders.provider import create_client_from_provider_config
from ..constants import (
    ANNOTATION_EXTERNAL_NAME,
    API_GROUP,
    API_GROUP_VERSION,
    API_VERSION,
    CONTROLLER_NAME,
    FINALIZER,
)
from ..logging import log_resource_event
from ..models import ConnectionDetails, ExternalClient, ExternalObservation, ManagedResource
from ..services.garage.client import GarageClient
from ..tracing import trace_span
from ..utils.conditions import (
    set_available_condition,
    set_creating_condition,
    set_deleting_condition,
    set_reconcile_error_condition,
    set_reconcile_success_condition,
    set_references_not_ready_condition,
)
from ..utils.errors import (
    ReferenceNotReadyError,
    ReferenceResolutionError,
    ResourceTypeMismatchError,
    sanitize_exception,
)
from ..utils.events import (
    emit_connection_published,
    emit_external_adopted,
    emit_external_created,
    emit_external_deleted,
    emit_external_updated,
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_references_not_ready,
)
from ..utils.rate_limit import rate_limit_k8s
from ..utils.secrets import owner_reference, publish_connection_details
from .shared import get_core_client, get_k8s_client, get_provider_config_with_cache

REFERENCE_RETRY_DELAY_SECONDS = float(os.getenv("REFERENCE_RETRY_DELAY_SECONDS", "10"))
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "15"))


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "ProviderConfig", "Bucket")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def reconcile_with_metrics(
        self,
        body: Mapping[str, Any],
        reconcile_fn: Callable[[], None],
    ) -> None:
        """Execute reconciliation with metrics and error handling.

        A ``kopf.TemporaryError`` means the cycle is waiting on something else
        and is not counted as a failure.

        Args:
            body: Kubernetes resource body, the target of emitted events
            reconcile_fn: Function to execute for reconciliation
        """
        meta = body.get("metadata") or {}
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        except kopf.TemporaryError:
            metrics.reconcile_total.labels(kind=self.kind, result="waiting").inc()
            raise
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Update resource status with common fields.

        Args:
            patch: Kopf patch object
            meta: Kubernetes resource metadata
            ready: Whether the resource is ready
            status_data: Additional status data to include
        """
        status_update = {
            "observedGeneration": meta.get("generation", 0),
            **(status_data or {}),
        }
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
        patch.status.update(status_update)


class ManagedHandler(BaseHandler):
    """Drives one kind of Garage resource toward its declared state.

    Each cycle re-reads the object, connects to Garage through its
    ProviderConfig, observes the external resource and then creates, updates
    or does nothing. Deletion observes first and tears the external resource
    down only if it still exists. Subclasses supply the per-kind
    ``ExternalClient``.
    """

    def __init__(self, kind: str, plural: str):
        super().__init__(kind)
        self.plural = plural
        self._k8s_api: Any = None
        self._core_api: Any = None

    @property
    def k8s_api(self) -> Any:
        if self._k8s_api is None:
            self._k8s_api = get_k8s_client()
        return self._k8s_api

    @property
    def core_api(self) -> Any:
        if self._core_api is None:
            self._core_api = get_core_client()
        return self._core_api

    def external_client(self, garage: GarageClient, resource: ManagedResource) -> ExternalClient:
        """Build the per-kind external client for this cycle."""
        raise NotImplementedError

    @contextmanager
    def connect(self, resource: ManagedResource) -> Iterator[ExternalClient]:
        """Yield an external client backed by a Garage client that lives for this cycle only."""
        provider_config = get_provider_config_with_cache(self.k8s_api, resource.provider_config_name)
        garage = create_client_from_provider_config(
            provider_config.get("spec", {}),
            provider_config.get("metadata", {}),
        )
        try:
            yield self.external_client(garage, resource)
        finally:
            garage.close()

    def _object_target(self, namespace: str, name: str) -> dict[str, str]:
        return {
            "group": API_GROUP,
            "version": API_VERSION,
            "namespace": namespace,
            "plural": self.plural,
            "name": name,
        }

    def load_live_body(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Return the object as currently stored in the cluster.

        kopf hands every handler the snapshot it was triggered with, which may
        predate identifiers written by the previous cycle. Falls back to that
        snapshot if the object is already gone.
        """
        metadata = body.get("metadata") or {}
        target = self._object_target(metadata.get("namespace") or "default", metadata.get("name", ""))
        try:
            return rate_limit_k8s(self.k8s_api.get_namespaced_custom_object)(**target)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return dict(body)
            raise

    def reconcile(self, body: Mapping[str, Any], patch: kopf.Patch) -> None:
        """Run one Observe → Create/Update/NoOp cycle and persist the outcome."""
        live = self.load_live_body(body)
        resource = ManagedResource.from_kopf(
            self.kind, live.get("metadata") or {}, live.get("spec") or {}, live.get("status")
        )

        with trace_span(f"reconcile_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": resource.name}):
            try:
                with self.connect(resource) as external:
                    observation = external.observe(resource)
                    if not observation.resource_exists:
                        self._create(live, resource, external)
                    else:
                        set_available_condition(resource.conditions, observed_generation=resource.generation)
                        if resource.external_name_changed:
                            emit_external_adopted(live, self.kind, resource.external_name)
                            self.log_info(
                                live.get("metadata") or {},
                                f"Adopted existing external {self.kind} {resource.external_name}",
                                event="adopt",
                                reason="Adopted",
                            )
                        self._publish(live, resource, observation.connection_details)
                        if not observation.resource_up_to_date:
                            self._update(live, resource, external)
                set_reconcile_success_condition(resource.conditions, observed_generation=resource.generation)
            except Exception as e:
                self._record_failure(live, resource, e)
                self._raise_for_kopf(e)
            finally:
                self._persist(patch, resource)

    def _create(self, body: Mapping[str, Any], resource: ManagedResource, external: ExternalClient) -> None:
        set_creating_condition(resource.conditions, observed_generation=resource.generation)
        try:
            creation = external.create(resource)
        except Exception:
            metrics.external_operations_total.labels(kind=self.kind, operation="create", result="error").inc()
            raise
        metrics.external_operations_total.labels(kind=self.kind, operation="create", result="success").inc()
        self._record_identity(resource)
        emit_external_created(body, self.kind, resource.name)
        self.log_info(body.get("metadata") or {}, f"Created external {self.kind}", event="create", reason="Created")
        self._publish(body, resource, creation.connection_details)

    def _record_identity(self, resource: ManagedResource) -> None:
        """Write the identifiers returned by create to the object right away.

        kopf applies the handler patch only after the per-object lock is
        released, so the next queued cycle must find them in the live object.
        """
        target = self._object_target(resource.namespace, resource.name)
        rate_limit_k8s(self.k8s_api.patch_namespaced_custom_object_status)(
            **target,
            body={"status": {"atProvider": resource.at_provider}},
        )
        if resource.external_name_changed:
            rate_limit_k8s(self.k8s_api.patch_namespaced_custom_object)(
                **target,
                body={"metadata": {"annotations": {ANNOTATION_EXTERNAL_NAME: resource.external_name}}},
            )

    def _update(self, body: Mapping[str, Any], resource: ManagedResource, external: ExternalClient) -> None:
        metrics.drift_detected_total.labels(kind=self.kind, resource_type=self.kind.lower()).inc()
        try:
            update = external.update(resource)
        except Exception:
            metrics.external_operations_total.labels(kind=self.kind, operation="update", result="error").inc()
            raise
        metrics.external_operations_total.labels(kind=self.kind, operation="update", result="success").inc()
        emit_external_updated(body, self.kind, resource.name)
        self.log_info(body.get("metadata") or {}, f"Updated external {self.kind}", event="update", reason="Updated")
        self._publish(body, resource, update.connection_details)

    def delete(self, body: Mapping[str, Any], patch: kopf.Patch) -> None:
        """Tear down the external resource, then release the finalizer.

        Missing references do not block deletion: the identifiers persisted
        in status are used instead. Without any identifier nothing is called.
        """
        live = self.load_live_body(body)
        meta = live.get("metadata") or {}
        resource = ManagedResource.from_kopf(self.kind, meta, live.get("spec") or {}, live.get("status"))
        set_deleting_condition(resource.conditions, observed_generation=resource.generation)

        with trace_span(f"delete_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": resource.name}):
            try:
                with self.connect(resource) as external:
                    observation = self._observe_for_delete(meta, resource, external)
                    if observation is None or observation.resource_exists:
                        try:
                            external.delete(resource)
                        except Exception:
                            metrics.external_operations_total.labels(
                                kind=self.kind, operation="delete", result="error"
                            ).inc()
                            raise
                        metrics.external_operations_total.labels(
                            kind=self.kind, operation="delete", result="success"
                        ).inc()
                        emit_external_deleted(live, self.kind, resource.name)
                        self.log_info(meta, f"Deleted external {self.kind}", event="delete", reason="Deleted")
                    else:
                        self.log_info(
                            meta,
                            f"External {self.kind} already absent",
                            event="delete",
                            reason="AlreadyDeleted",
                        )
                set_reconcile_success_condition(resource.conditions, observed_generation=resource.generation)
            except Exception as e:
                self._record_failure(live, resource, e)
                self._persist(patch, resource)
                self._raise_for_kopf(e)

        self._persist(patch, resource)
        self.remove_finalizer(meta, patch)

    def _observe_for_delete(
        self,
        meta: dict[str, Any],
        resource: ManagedResource,
        external: ExternalClient,
    ) -> ExternalObservation | None:
        try:
            return external.observe(resource)
        except ReferenceResolutionError as e:
            self.log_info(
                meta,
                f"References unresolved during deletion, using persisted identifiers: {e}",
                event="delete",
                reason="ReferencesNotReady",
            )
            return None

    def _publish(self, body: Mapping[str, Any], resource: ManagedResource, details: ConnectionDetails) -> None:
        if not any(details.values()):
            return
        owner = owner_reference(self.kind, API_GROUP_VERSION, resource.name, resource.uid)
        written = publish_connection_details(
            self.core_api,
            resource.namespace,
            resource.connection_secret_name,
            details,
            owner_references=[owner],
            resource_type=self.kind.lower(),
        )
        if written:
            emit_connection_published(body, resource.connection_secret_name)
            self.log_info(
                body.get("metadata") or {},
                "Published connection details",
                event="publish",
                reason="ConnectionDetailsPublished",
                secret_name=resource.connection_secret_name,
            )

    def _record_failure(self, body: Mapping[str, Any], resource: ManagedResource, error: Exception) -> None:
        message = sanitize_exception(error)
        if isinstance(error, ReferenceNotReadyError):
            set_references_not_ready_condition(resource.conditions, message, observed_generation=resource.generation)
            metrics.reference_not_ready_total.labels(kind=self.kind, referent_kind=error.referent_kind).inc()
            emit_references_not_ready(body, message)
            self.log_info(body.get("metadata") or {}, message, event="reconcile", reason="ReferencesNotReady")
            return
        set_reconcile_error_condition(resource.conditions, message, observed_generation=resource.generation)

    def _raise_for_kopf(self, error: Exception) -> None:
        """Re-raise ``error`` in the form kopf should retry or give up on. Must be called from an except block."""
        if isinstance(error, ReferenceNotReadyError):
            raise kopf.TemporaryError(str(error), delay=REFERENCE_RETRY_DELAY_SECONDS) from error
        if isinstance(error, ResourceTypeMismatchError):
            raise kopf.PermanentError(str(error)) from error
        raise error

    def _persist(self, patch: kopf.Patch, resource: ManagedResource) -> None:
        """Write observed state, conditions and the identity hint back to the object."""
        patch.status["atProvider"] = resource.at_provider
        patch.status["conditions"] = resource.conditions
        patch.status["observedGeneration"] = resource.generation
        if resource.external_name_changed:
            patch.metadata["annotations"] = {ANNOTATION_EXTERNAL_NAME: resource.external_name}
