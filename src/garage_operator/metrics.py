"""Prometheus metrics for the Garage Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "garage_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "garage_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# External resource operations (create/update/delete/adopt)
external_operations_total = Counter(
    "garage_operator_external_operations_total",
    "Total number of operations against Garage resources",
    ["kind", "operation", "result"],
)

# Identity resolution outcomes, labelled by the tier that resolved the identity
identity_resolution_total = Counter(
    "garage_operator_identity_resolution_total",
    "Identity resolutions by resolving tier",
    ["kind", "tier"],
)

# Dependent resources waiting on an unresolved reference
reference_not_ready_total = Counter(
    "garage_operator_reference_not_ready_total",
    "Total number of reconciliations blocked on a referent that is not ready",
    ["kind", "referent_kind"],
)

# Provider connectivity metrics
provider_connectivity_total = Counter(
    "garage_operator_provider_connectivity_total",
    "ProviderConfig connectivity status changes",
    ["provider", "status"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "garage_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "resource_type"],
)

# API call metrics
api_call_total = Counter(
    "garage_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "garage_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

error_total = Counter(
    "garage_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "garage_operator_resource_status_total",
    "Resource status transitions after reconciliation",
    ["kind", "status"],
)
