"""Prometheus metrics for the Derived Secret Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "derived_secret_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "derived_secret_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "derived_secret_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "derived_secret_operator_resource_status_total",
    "Resource status observations",
    ["kind", "status"],
)

# Derivation metrics
derivation_duration_seconds = Histogram(
    "derived_secret_operator_derivation_duration_seconds",
    "Duration of a single Argon2id key derivation in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Secret operation metrics
secret_operations_total = Counter(
    "derived_secret_operator_secret_operations_total",
    "Total number of Kubernetes secret operations",
    ["operation", "result"],
)

dependent_secrets = Gauge(
    "derived_secret_operator_dependent_secrets",
    "Number of DerivedSecrets depending on a MasterPassword",
    ["master_password"],
)

# Reverse watch metrics
reconcile_requests_total = Counter(
    "derived_secret_operator_reconcile_requests_total",
    "Reconcile requests emitted from secret events and master password changes",
    ["kind", "source"],
)

# API call metrics
api_call_total = Counter(
    "derived_secret_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "derived_secret_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
