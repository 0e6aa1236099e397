"""Constants for the Garage Operator."""

# API Group
API_GROUP = "garage.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_PROVIDER_CONFIG = "ProviderConfig"
KIND_BUCKET = "Bucket"
KIND_KEY = "Key"
KIND_KEY_ACCESS = "KeyAccess"

# Plurals
PLURAL_PROVIDER_CONFIGS = "providerconfigs"
PLURAL_BUCKETS = "buckets"
PLURAL_KEYS = "keys"
PLURAL_KEY_ACCESSES = "keyaccesses"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_RESOURCE_TYPE = f"{API_GROUP}/resource-type"

# Annotations
ANNOTATION_EXTERNAL_NAME = f"{API_GROUP}/external-name"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "garage-operator"
CONTROLLER_NAME = "garage-operator"

# Default ProviderConfig name when a resource omits providerConfigRef
DEFAULT_PROVIDER_CONFIG = "default"

# Connection detail keys
CONNECTION_ACCESS_KEY_ID = "accessKeyId"
CONNECTION_SECRET_ACCESS_KEY = "secretAccessKey"

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"
COND_AUTH_VALID = "AuthValid"
COND_ENDPOINT_REACHABLE = "EndpointReachable"

# Condition Reasons
REASON_AVAILABLE = "Available"
REASON_CREATING = "Creating"
REASON_DELETING = "Deleting"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_REFERENCES_NOT_READY = "ReferencesNotReady"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_REFERENCES_NOT_READY = "ReferencesNotReady"
EVENT_REASON_CREATED_EXTERNAL = "CreatedExternalResource"
EVENT_REASON_UPDATED_EXTERNAL = "UpdatedExternalResource"
EVENT_REASON_DELETED_EXTERNAL = "DeletedExternalResource"
EVENT_REASON_ADOPTED_EXTERNAL = "AdoptedExternalResource"
EVENT_REASON_CONNECTION_PUBLISHED = "ConnectionDetailsPublished"
