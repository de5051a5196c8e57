"""Reconciliation engine - declarative controller object management.

The engine keeps controller objects in line with declared desired state:
- Declare desired state, not individual API calls
- References resolved and validated before any request
- Drift detected on read (changed fields or vanished objects)
- Failures classified and reported with the controller's response body

Usage:
    from aap_reconciler.engine import Reconciler, ManagedObject

    reconciler = Reconciler(ControllerClient(transport))
    org = ManagedObject(Organization(name="Default", max_hosts=10))
    result = await reconciler.apply(org, dry_run=True)
"""

from .reconciler import Reconciler
from .schema import (
    Action,
    ObjectState,
    ChangeType,
    ManagedObject,
    ValidationResult,
    FieldChange,
    DiffResult,
    ReconcileResult,
)
from .parser import DesiredStateParser, ParseError, load_desired_state
from .validator import DesiredStateValidator
from .drift import DiffEngine, summarize_diff, describe_changes

__all__ = [
    # Main engine
    "Reconciler",
    # Schema classes
    "Action",
    "ObjectState",
    "ChangeType",
    "ManagedObject",
    "ValidationResult",
    "FieldChange",
    "DiffResult",
    "ReconcileResult",
    # Parser
    "DesiredStateParser",
    "ParseError",
    "load_desired_state",
    # Components (for advanced use)
    "DesiredStateValidator",
    "DiffEngine",
    "summarize_diff",
    "describe_changes",
]
