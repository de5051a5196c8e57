"""Diff engine for comparing desired state with known controller state.

Only fields the caller declared (not None) are compared; everything else is
left to the controller.
"""
from typing import Any, Optional

from ..resources.schema import ENCRYPTED, Resource
from .schema import ChangeType, DiffResult, FieldChange


class DiffEngine:
    """Calculate differences between desired and known state."""

    def calculate(
        self,
        desired: Resource,
        known: Optional[Resource],
    ) -> DiffResult:
        """
        Calculate the change needed to bring ``known`` to ``desired``.

        Args:
            desired: Desired record with references already resolved
            known: Last hydrated state, or None if nothing exists remotely

        Returns:
            DiffResult (CREATE, MODIFY or NO_CHANGE)
        """
        if known is None:
            return DiffResult(
                label=desired.label,
                change_type=ChangeType.CREATE,
                field_changes=[
                    FieldChange(field=name, desired=value)
                    for name, value in desired.redacted().items()
                ],
            )

        result = DiffResult(label=known.label, change_type=ChangeType.NO_CHANGE)
        secret = set(desired.SECRET_FIELDS)

        for name in desired.field_names():
            want = getattr(desired, name)
            if want is None:
                continue
            have = getattr(known, name)
            if _same(want, have, partial=name in secret):
                continue
            if name in secret:
                result.field_changes.append(FieldChange(field=name, current="***", desired="***"))
            else:
                result.field_changes.append(FieldChange(field=name, current=have, desired=want))

        if result.field_changes:
            result.change_type = ChangeType.MODIFY
        return result

    def deletion(self, known: Resource) -> DiffResult:
        """Diff for removing an object that exists remotely."""
        return DiffResult(label=known.label, change_type=ChangeType.DELETE)


def _same(want: Any, have: Any, partial: bool = False) -> bool:
    """Compare a declared value with a hydrated one.

    With ``partial`` (secret fields) the controller returns ENCRYPTED in
    place of each secret and a declared secret is treated as matching it;
    dicts compare on the declared keys only. Everything else compares whole.
    """
    if not partial:
        return want == have
    if have == ENCRYPTED:
        return True
    if isinstance(want, dict) and isinstance(have, dict):
        return all(
            _same(value, have.get(key), partial=True)
            for key, value in want.items()
            if value is not None
        )
    return want == have


def summarize_diff(diffs: list[DiffResult]) -> str:
    """
    Create a human-readable summary of a set of diffs.

    Useful for dry-run output and logging.
    """
    pending = [d for d in diffs if not d.no_change]
    if not pending:
        return "No changes needed - controller state matches desired state"

    lines = [f"Changes to apply ({len(pending)} total):", ""]

    for diff in pending:
        if diff.change_type == ChangeType.CREATE:
            lines.append(f"  [+] Create {diff.label}")
            for change in diff.field_changes:
                lines.append(f"      {change.field}: {change.desired!r}")

        elif diff.change_type == ChangeType.DELETE:
            lines.append(f"  [-] Delete {diff.label}")

        elif diff.change_type == ChangeType.MODIFY:
            lines.append(f"  [~] Modify {diff.label}")
            for change in diff.field_changes:
                lines.append(f"      {change.field}: {change.current!r} -> {change.desired!r}")

    return "\n".join(lines)


def describe_changes(diff: DiffResult) -> list[str]:
    """One line per change, for ReconcileResult.changes_made."""
    if diff.change_type == ChangeType.CREATE:
        return [f"Created {diff.label}"]
    if diff.change_type == ChangeType.DELETE:
        return [f"Deleted {diff.label}"]
    if diff.change_type == ChangeType.MODIFY:
        return [f"Modified {diff.label}: {', '.join(diff.changed_fields)}"]
    return []
