"""Resolution of cross-resource references to observed external identifiers."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from .. import metrics
from ..constants import API_GROUP, API_VERSION
from ..models import Reference
from .errors import ReferenceNotFoundError, ReferenceNotReadyError
from .rate_limit import rate_limit_k8s


def resolve_reference(
    api: Any,
    literal: str | None,
    reference: Reference | None,
    referent_kind: str,
    referent_plural: str,
    field: str,
) -> str:
    """Resolve an identifier that is given either literally or by reference.

    A non-empty literal always wins. Otherwise the referenced object is read
    from the cluster (never from cache) and ``status.atProvider[field]`` is
    returned. Returns an empty string when neither is set.

    Args:
        api: Kubernetes CustomObjectsApi instance
        literal: Literal identifier from the desired state
        reference: Reference to another managed resource
        referent_kind: Kind of the referenced resource (for errors)
        referent_plural: Plural resource name used for the lookup
        field: Observed field holding the identifier

    Raises:
        ReferenceNotFoundError: If the referenced object does not exist
        ReferenceNotReadyError: If the referenced object has not observed its identifier yet
    """
    if literal:
        return literal
    if reference is None:
        return ""

    try:
        obj = rate_limit_k8s(api.get_namespaced_custom_object)(
            group=API_GROUP,
            version=API_VERSION,
            namespace=reference.namespace,
            plural=referent_plural,
            name=reference.name,
        )
        metrics.api_call_total.labels(api_type="k8s", operation=f"get_{referent_plural}", result="success").inc()
    except client.exceptions.ApiException as e:
        metrics.api_call_total.labels(api_type="k8s", operation=f"get_{referent_plural}", result="error").inc()
        if e.status == 404:
            raise ReferenceNotFoundError(
                f"referenced {referent_kind} {reference.namespace}/{reference.name} not found",
                referent_kind,
                reference.name,
                reference.namespace,
            ) from e
        raise

    value = ((obj.get("status") or {}).get("atProvider") or {}).get(field)
    if not value:
        raise ReferenceNotReadyError(
            f"referenced {referent_kind} {reference.namespace}/{reference.name} has no {field} yet",
            referent_kind,
            reference.name,
            reference.namespace,
        )
    return value
