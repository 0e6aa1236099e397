"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any, Mapping

import kopf

from ..constants import (
    EVENT_REASON_ADOPTED_EXTERNAL,
    EVENT_REASON_CONNECTION_PUBLISHED,
    EVENT_REASON_CREATED_EXTERNAL,
    EVENT_REASON_DELETED_EXTERNAL,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_REFERENCES_NOT_READY,
    EVENT_REASON_UPDATED_EXTERNAL,
)


def emit_event(
    body: Mapping[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body; kopf builds the involved object from its apiVersion, kind and metadata
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: Mapping[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: Mapping[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_references_not_ready(body: Mapping[str, Any], message: str) -> None:
    """Emit an event while waiting for a referenced resource."""
    emit_event(body, EVENT_REASON_REFERENCES_NOT_READY, message)


def emit_external_created(body: Mapping[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_CREATED_EXTERNAL, f"{kind} {external_id} created")


def emit_external_updated(body: Mapping[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_UPDATED_EXTERNAL, f"{kind} {external_id} updated")


def emit_external_deleted(body: Mapping[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_DELETED_EXTERNAL, f"{kind} {external_id} deleted")


def emit_external_adopted(body: Mapping[str, Any], kind: str, external_id: str) -> None:
    """Emit an event when an existing external resource is adopted by name."""
    emit_event(body, EVENT_REASON_ADOPTED_EXTERNAL, f"{kind} {external_id} adopted")


def emit_connection_published(body: Mapping[str, Any], secret_name: str) -> None:
    emit_event(body, EVENT_REASON_CONNECTION_PUBLISHED, f"Connection details written to secret {secret_name}")
