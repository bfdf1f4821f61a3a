"""Constants for the Derived Secret Operator."""

# API Group
API_GROUP = "secrets.oleksiyp.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_MASTER_PASSWORD = "MasterPassword"
KIND_DERIVED_SECRET = "DerivedSecret"

# Plurals
PLURAL_MASTER_PASSWORDS = "masterpasswords"
PLURAL_DERIVED_SECRETS = "derivedsecrets"

# Labels
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "derived-secret-operator"

# Annotations
ANNOTATION_RECONCILE_TRIGGER = f"{API_GROUP}/reconcile-trigger"

# Finalizers
FINALIZER = f"{API_GROUP}/derivedsecret-finalizer"

# Field Manager
FIELD_MANAGER = "derived-secret-operator"

# Master password storage
MASTER_PASSWORD_KEY = "masterPassword"
MASTER_PASSWORD_SECRET_SUFFIX = "-mp"
DEFAULT_MASTER_PASSWORD_NAME = "default"
DEFAULT_MASTER_PASSWORD_LENGTH = 86

# Derived secret defaults
DEFAULT_SECRET_TYPE = "Opaque"

# Secret types for derived keys
SECRET_TYPE_PASSWORD = "password"
SECRET_TYPE_ENCRYPTION_KEY = "encryption-key"
SECRET_TYPE_CUSTOM = "custom"

# Condition Types
COND_READY = "Ready"

# Condition Reasons
REASON_SECRET_READY = "SecretReady"
REASON_INVALID_SPEC = "InvalidSpec"
REASON_SECRET_RECONCILIATION_FAILED = "SecretReconciliationFailed"
REASON_RECONCILIATION_FAILED = "ReconciliationFailed"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_MASTER_PASSWORD_GENERATED = "MasterPasswordGenerated"
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_SECRET_UPDATED = "SecretUpdated"
EVENT_REASON_SECRET_DELETED = "SecretDeleted"
