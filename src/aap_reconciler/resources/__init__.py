"""Resource records and reference resolution."""
from .schema import (
    ENCRYPTED,
    MACHINE_CREDENTIAL_TYPE,
    SCM_CREDENTIAL_TYPE,
    RESOURCE_TYPES,
    Resource,
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
from .references import (
    Reference,
    Unset,
    Ref,
    InvalidRef,
    parse_reference,
    ReferenceResolver,
)

__all__ = [
    "ENCRYPTED",
    "MACHINE_CREDENTIAL_TYPE",
    "SCM_CREDENTIAL_TYPE",
    "RESOURCE_TYPES",
    "Resource",
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
    "Reference",
    "Unset",
    "Ref",
    "InvalidRef",
    "parse_reference",
    "ReferenceResolver",
]
