"""Pre-flight validation for desired state.

Catches problems before any controller communication.
"""
from ..errors import InvalidReference
from ..resources.references import ReferenceResolver
from ..resources.schema import Credential
from .schema import Action, ManagedObject, ValidationResult


class DesiredStateValidator:
    """Validate a set of managed objects before reconciling them."""

    def __init__(self):
        self.resolver = ReferenceResolver()

    def validate(self, objects: list[ManagedObject]) -> ValidationResult:
        """
        Validate desired state.

        Performs pre-flight checks:
        - Reference fields parse to ids
        - Required fields are present
        - No duplicate names within a collection and organization
        - Deletions have something to delete

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        for obj in objects:
            if obj.action == Action.ABSENT:
                self._check_absent(obj, warnings)
            else:
                self._check_ensure(obj, errors, warnings)

        self._check_duplicates(objects, errors)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _check_ensure(
        self,
        obj: ManagedObject,
        errors: list[str],
        warnings: list[str],
    ) -> None:
        try:
            resolved = self.resolver.resolve(obj.desired)
        except InvalidReference as e:
            errors.append(f"{obj.label}: {e}")
            return

        missing = resolved.missing_required()
        # Adopted objects may declare only what they change
        if missing and not obj.is_managed:
            errors.append(
                f"{obj.label}: missing required field(s) {', '.join(missing)}"
            )

        if isinstance(resolved, Credential) and not resolved.to_payload().get("inputs"):
            warnings.append(f"{obj.label} has no inputs")

    def _check_absent(self, obj: ManagedObject, warnings: list[str]) -> None:
        if not obj.is_managed:
            warnings.append(
                f"{obj.label} is marked absent but has no id; nothing will be deleted"
            )

    def _check_duplicates(self, objects: list[ManagedObject], errors: list[str]) -> None:
        seen: dict[tuple, str] = {}
        for obj in objects:
            if obj.action == Action.ABSENT:
                continue
            name = getattr(obj.desired, "name", None)
            if not name:
                continue
            owner = getattr(obj.desired, "organization", None) or getattr(obj.desired, "inventory", None)
            key = (obj.desired.COLLECTION, name, str(owner))
            if key in seen:
                errors.append(f"Duplicate {obj.desired.KIND} '{name}' declared twice")
            else:
                seen[key] = name
