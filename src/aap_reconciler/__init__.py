"""Declarative reconciliation of Ansible Automation Platform controller objects."""
from .config import ControllerConfig, load_config
from .client import ControllerTransport, ControllerClient, ResourceClient
from .engine import Reconciler, ManagedObject, ReconcileResult
from .errors import (
    ControllerError,
    TransportError,
    NotFound,
    RemoteError,
    ValidationError,
    ConflictError,
    DecodeError,
    InvalidReference,
    MissingRequiredFields,
    IdentityError,
    ConfigError,
    is_retryable,
)
from .resources import (
    Organization,
    Inventory,
    Project,
    Credential,
    CredentialType,
    JobTemplate,
    InventorySource,
    InventoryScript,
    machine_credential,
    scm_credential,
)

__version__ = "0.1.0"

__all__ = [
    "ControllerConfig",
    "load_config",
    "ControllerTransport",
    "ControllerClient",
    "ResourceClient",
    "Reconciler",
    "ManagedObject",
    "ReconcileResult",
    "ControllerError",
    "TransportError",
    "NotFound",
    "RemoteError",
    "ValidationError",
    "ConflictError",
    "DecodeError",
    "InvalidReference",
    "MissingRequiredFields",
    "IdentityError",
    "ConfigError",
    "is_retryable",
    "Organization",
    "Inventory",
    "Project",
    "Credential",
    "CredentialType",
    "JobTemplate",
    "InventorySource",
    "InventoryScript",
    "machine_credential",
    "scm_credential",
]
