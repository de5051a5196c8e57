"""Schema definitions for the reconciliation engine.

Defines managed-object state and all result dataclasses.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from ..resources.schema import Resource

T = TypeVar("T", bound=Resource)


class Action(str, Enum):
    """What the caller wants for an object."""
    ENSURE = "ensure"   # Create if missing, update if different
    ABSENT = "absent"   # Delete if it exists


class ObjectState(str, Enum):
    """Whether the engine tracks a remote counterpart for an object."""
    UNMANAGED = "unmanaged"
    MANAGED = "managed"


class ChangeType(str, Enum):
    """Type of change in a diff."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    NO_CHANGE = "no_change"


@dataclass
class ManagedObject(Generic[T]):
    """Caller-owned lifecycle record for one controller object.

    ``desired`` is what the caller declares. ``known`` is the last state
    hydrated from the controller, or None while unmanaged.
    """
    desired: T
    known: Optional[T] = None
    state: ObjectState = ObjectState.UNMANAGED
    action: Action = Action.ENSURE

    @classmethod
    def adopt(cls, desired: T, object_id: int, action: Action = Action.ENSURE) -> "ManagedObject[T]":
        """Track an object that already exists on the controller by id.

        Only the id is known until the next read.
        """
        known = type(desired)(id=object_id)  # type: ignore[call-arg]
        return cls(desired=desired, known=known, state=ObjectState.MANAGED, action=action)

    @property
    def id(self) -> Optional[int]:
        return self.known.id if self.known is not None else None

    @property
    def is_managed(self) -> bool:
        return self.state == ObjectState.MANAGED

    @property
    def label(self) -> str:
        return (self.known or self.desired).label

    def forget(self) -> None:
        """Drop remote tracking; only re-creation is valid afterwards."""
        self.known = None
        self.state = ObjectState.UNMANAGED


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of pre-flight validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Diff Results ---

@dataclass
class FieldChange:
    """A single field that differs between desired and known state."""
    field: str
    current: Any = None
    desired: Any = None


@dataclass
class DiffResult:
    """Result of diffing desired vs known state for one object."""
    label: str
    change_type: ChangeType
    field_changes: list[FieldChange] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return self.change_type == ChangeType.NO_CHANGE

    @property
    def changed_fields(self) -> list[str]:
        return [c.field for c in self.field_changes]


# --- Reconcile Results ---

@dataclass
class ReconcileResult:
    """Outcome of reconciling one managed object."""
    label: str
    action: ChangeType = ChangeType.NO_CHANGE
    success: bool = False
    dry_run: bool = False
    object_id: Optional[int] = None
    changes_made: list[str] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": self.label,
            "action": self.action.value,
            "success": self.success,
            "dry_run": self.dry_run,
            "object_id": self.object_id,
            "changes_made": self.changes_made,
            "error": self.error,
            "error_type": self.error_type,
            "retryable": self.retryable,
        }
