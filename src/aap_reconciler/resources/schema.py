"""Typed records for the objects managed on the controller.

Every optional field is ``Optional[...]`` and ``None`` means *absent*: it is
left out of request bodies, so the controller applies its default on create
and keeps its current value on update. Field names are the controller's wire
names.
"""
import copy
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Optional, TypeVar

# Placeholder the controller returns instead of secret credential inputs
ENCRYPTED = "$encrypted$"

# Built-in credential type ids on a stock controller
MACHINE_CREDENTIAL_TYPE = 1
SCM_CREDENTIAL_TYPE = 2

R = TypeVar("R", bound="Resource")


def _unset_reference(value: Any) -> bool:
    """Integer ids of zero or below mean "no reference"."""
    return isinstance(value, int) and not isinstance(value, bool) and value <= 0


class Resource:
    """Behaviour shared by all resource dataclasses.

    Subclasses are dataclasses that declare an ``id`` field plus their own
    fields, and set the class-level metadata below.
    """

    # API collection segment, e.g. "organizations"
    COLLECTION: ClassVar[str] = ""
    # Human readable type name used in logs and errors
    KIND: ClassVar[str] = ""
    REQUIRED: ClassVar[tuple[str, ...]] = ()
    # Required fields for which an empty string is a meaningful value
    ALLOW_EMPTY: ClassVar[tuple[str, ...]] = ()
    # Integer fields holding another object's id
    REFERENCES: ClassVar[tuple[str, ...]] = ()
    # Fields whose values must never reach logs or audit records
    SECRET_FIELDS: ClassVar[tuple[str, ...]] = ()

    id: Optional[int]

    @classmethod
    def field_names(cls) -> list[str]:
        """Wire field names, excluding ``id``."""
        return [f.name for f in fields(cls) if f.name != "id"]  # type: ignore[arg-type]

    @property
    def label(self) -> str:
        """Short description for log lines: ``organization 'Default' (#1)``."""
        name = getattr(self, "name", None)
        ident = f"#{self.id}" if self.id is not None else "new"
        return f"{self.KIND} '{name}' ({ident})"

    def missing_required(self) -> list[str]:
        """Required fields that are absent, empty or non-positive."""
        missing = []
        for name in self.REQUIRED:
            value = getattr(self, name)
            if value is None:
                missing.append(name)
            elif value == "" and name not in self.ALLOW_EMPTY:
                missing.append(name)
            elif name in self.REFERENCES and _unset_reference(value):
                missing.append(name)
        return missing

    def to_payload(self) -> dict[str, Any]:
        """Request body: every present field except the server-assigned id.

        Non-positive integer references count as unset and are left out.
        """
        payload = {}
        for name in self.field_names():
            value = getattr(self, name)
            if value is None:
                continue
            if name in self.REFERENCES and _unset_reference(value):
                continue
            if name in self.SECRET_FIELDS and isinstance(value, dict):
                # Secret bags are keyed inputs; absent keys are not sent
                value = {k: v for k, v in value.items() if v is not None}
            payload[name] = copy.deepcopy(value)
        return payload

    @classmethod
    def from_payload(cls: type[R], data: dict[str, Any]) -> R:
        """Hydrate a record from a response body.

        Keys the record does not know about (``related``, ``summary_fields``,
        timestamps, ...) are ignored.

        Raises:
            ValueError: If ``id`` is present but not an integer
            TypeError: If ``data`` is not a JSON object
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")

        ident = data.get("id")
        if ident is not None and (isinstance(ident, bool) or not isinstance(ident, int)):
            raise ValueError(f"id must be an integer, got {ident!r}")

        known = {name: data[name] for name in cls.field_names() if name in data}
        return cls(id=ident, **known)  # type: ignore[call-arg]

    def overlay(self: R, declared: "Resource") -> R:
        """Return a copy with every present field of ``declared`` applied.

        Fields ``declared`` leaves as ``None`` keep this record's value.
        Secret dict fields are overlaid key by key; every other field,
        including opaque dicts, is replaced wholesale. The identity is always
        this record's.
        """
        changes = {}
        for name in self.field_names():
            value = getattr(declared, name)
            if value is None:
                continue
            current = getattr(self, name)
            if name in self.SECRET_FIELDS and isinstance(value, dict) and isinstance(current, dict):
                merged = copy.deepcopy(current)
                merged.update({k: v for k, v in value.items() if v is not None})
                changes[name] = merged
            else:
                changes[name] = copy.deepcopy(value)
        return replace(self, **changes)  # type: ignore[type-var]

    def redacted(self) -> dict[str, Any]:
        """Payload with secret fields masked, for logs and audit entries."""
        payload = self.to_payload()
        for name in self.SECRET_FIELDS:
            value = payload.get(name)
            if isinstance(value, dict):
                payload[name] = {k: "***" for k in value}
            elif value is not None:
                payload[name] = "***"
        return payload


@dataclass
class Organization(Resource):
    """Top-level tenant; owns inventories, projects and credentials."""
    COLLECTION: ClassVar[str] = "organizations"
    KIND: ClassVar[str] = "organization"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name",)

    name: Optional[str] = None
    description: Optional[str] = None
    max_hosts: Optional[int] = None
    custom_virtualenv: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Inventory(Resource):
    """Host inventory. ``kind`` is "" for standard or "smart"."""
    COLLECTION: ClassVar[str] = "inventories"
    KIND: ClassVar[str] = "inventory"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "organization")
    REFERENCES: ClassVar[tuple[str, ...]] = ("organization",)

    name: Optional[str] = None
    organization: Optional[int] = None
    description: Optional[str] = None
    kind: Optional[str] = None
    host_filter: Optional[str] = None
    variables: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Project(Resource):
    """SCM repository holding playbooks. ``scm_type`` "" means manual."""
    COLLECTION: ClassVar[str] = "projects"
    KIND: ClassVar[str] = "project"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "organization", "scm_type")
    ALLOW_EMPTY: ClassVar[tuple[str, ...]] = ("scm_type",)
    REFERENCES: ClassVar[tuple[str, ...]] = ("organization", "credential")

    name: Optional[str] = None
    organization: Optional[int] = None
    scm_type: Optional[str] = None
    description: Optional[str] = None
    scm_url: Optional[str] = None
    scm_branch: Optional[str] = None
    credential: Optional[int] = None
    scm_clean: Optional[bool] = None
    scm_delete_on_update: Optional[bool] = None
    scm_update_on_launch: Optional[bool] = None
    scm_update_cache_timeout: Optional[int] = None
    local_path: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Credential(Resource):
    """Credential whose ``inputs`` depend on its credential type.

    ``inputs`` is passed through untouched; checking it against the type's
    input schema is left to the controller.
    """
    COLLECTION: ClassVar[str] = "credentials"
    KIND: ClassVar[str] = "credential"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "organization", "credential_type")
    REFERENCES: ClassVar[tuple[str, ...]] = ("organization", "credential_type")
    SECRET_FIELDS: ClassVar[tuple[str, ...]] = ("inputs",)

    name: Optional[str] = None
    organization: Optional[int] = None
    credential_type: Optional[int] = None
    description: Optional[str] = None
    inputs: Optional[dict[str, Any]] = None
    id: Optional[int] = None


@dataclass
class CredentialType(Resource):
    """Custom credential type. ``inputs``/``injectors`` are opaque."""
    COLLECTION: ClassVar[str] = "credential_types"
    KIND: ClassVar[str] = "credential type"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "kind")

    name: Optional[str] = None
    kind: Optional[str] = None
    description: Optional[str] = None
    inputs: Optional[Any] = None
    injectors: Optional[Any] = None
    id: Optional[int] = None


@dataclass
class JobTemplate(Resource):
    """Playbook run definition tying an inventory to a project."""
    COLLECTION: ClassVar[str] = "job_templates"
    KIND: ClassVar[str] = "job template"
    REQUIRED: ClassVar[tuple[str, ...]] = (
        "name", "job_type", "inventory", "project", "playbook",
    )
    REFERENCES: ClassVar[tuple[str, ...]] = ("inventory", "project")

    name: Optional[str] = None
    job_type: Optional[str] = None
    inventory: Optional[int] = None
    project: Optional[int] = None
    playbook: Optional[str] = None
    description: Optional[str] = None
    forks: Optional[int] = None
    limit: Optional[str] = None
    verbosity: Optional[int] = None
    extra_vars: Optional[str] = None
    id: Optional[int] = None


@dataclass
class InventorySource(Resource):
    """Dynamic inventory source (scm, ec2, vmware, ...)."""
    COLLECTION: ClassVar[str] = "inventory_sources"
    KIND: ClassVar[str] = "inventory source"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "inventory", "source")
    REFERENCES: ClassVar[tuple[str, ...]] = ("inventory", "credential", "source_project")

    name: Optional[str] = None
    inventory: Optional[int] = None
    source: Optional[str] = None
    description: Optional[str] = None
    source_path: Optional[str] = None
    source_vars: Optional[str] = None
    credential: Optional[int] = None
    source_project: Optional[int] = None
    update_on_launch: Optional[bool] = None
    update_cache_timeout: Optional[int] = None
    overwrite: Optional[bool] = None
    overwrite_vars: Optional[bool] = None
    id: Optional[int] = None


@dataclass
class InventoryScript(Resource):
    """Custom inventory script (older controller releases)."""
    COLLECTION: ClassVar[str] = "inventory_scripts"
    KIND: ClassVar[str] = "inventory script"
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "organization", "script")
    REFERENCES: ClassVar[tuple[str, ...]] = ("organization",)

    name: Optional[str] = None
    organization: Optional[int] = None
    script: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None


# Resource registry, keyed by API collection
RESOURCE_TYPES: dict[str, type[Resource]] = {
    cls.COLLECTION: cls
    for cls in (
        Organization,
        Inventory,
        Project,
        Credential,
        CredentialType,
        JobTemplate,
        InventorySource,
        InventoryScript,
    )
}


def machine_credential(
    name: str,
    organization: Any,
    description: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    ssh_key_data: Optional[str] = None,
    ssh_public_key_data: Optional[str] = None,
    ssh_key_unlock: Optional[str] = None,
    become_method: Optional[str] = None,
    become_username: Optional[str] = None,
    become_password: Optional[str] = None,
) -> Credential:
    """Build a Machine (SSH) credential."""
    return Credential(
        name=name,
        organization=organization,
        credential_type=MACHINE_CREDENTIAL_TYPE,
        description=description,
        inputs={
            "username": username,
            "password": password,
            "ssh_key_data": ssh_key_data,
            "ssh_public_key_data": ssh_public_key_data,
            "ssh_key_unlock": ssh_key_unlock,
            "become_method": become_method,
            "become_username": become_username,
            "become_password": become_password,
        },
    )


def scm_credential(
    name: str,
    organization: Any,
    description: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    ssh_key_data: Optional[str] = None,
    ssh_key_unlock: Optional[str] = None,
) -> Credential:
    """Build a Source Control credential."""
    return Credential(
        name=name,
        organization=organization,
        credential_type=SCM_CREDENTIAL_TYPE,
        description=description,
        inputs={
            "username": username,
            "password": password,
            "ssh_key_data": ssh_key_data,
            "ssh_key_unlock": ssh_key_unlock,
        },
    )
