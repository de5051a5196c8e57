"""Parser for desired state documents.

Converts dict/YAML input into ManagedObjects, in document order:

    organizations:
      - name: Default
        max_hosts: 10
    inventories:
      - name: Web servers
        organization: 1
      - name: Legacy
        organization: 1
        id: 42            # adopt an existing object
        action: absent    # and delete it
"""
from pathlib import Path
from typing import Any

import yaml

from ..resources.schema import RESOURCE_TYPES, Resource
from .schema import Action, ManagedObject


class ParseError(Exception):
    """Error parsing a desired state document."""
    pass


# Keys handled by the parser rather than passed to the record
CONTROL_KEYS = ("id", "action")


class DesiredStateParser:
    """Parse desired state from dict/YAML format."""

    def parse(self, document: dict[str, Any]) -> list[ManagedObject]:
        """
        Parse a document into managed objects.

        Args:
            document: Mapping of collection name to a list of object entries

        Returns:
            ManagedObjects in the order they appear in the document

        Raises:
            ParseError: If the document is malformed
        """
        if not isinstance(document, dict):
            raise ParseError("Desired state must be a mapping of collections")

        objects: list[ManagedObject] = []
        for collection, items in document.items():
            resource_class = RESOURCE_TYPES.get(collection)
            if resource_class is None:
                raise ParseError(
                    f"Unknown collection '{collection}'. "
                    f"Valid: {', '.join(sorted(RESOURCE_TYPES))}"
                )
            if items is None:
                continue
            if not isinstance(items, list):
                raise ParseError(f"'{collection}' must be a list of objects")

            for index, item in enumerate(items):
                objects.append(
                    self._parse_object(resource_class, item, f"{collection}[{index}]")
                )

        return objects

    def _parse_object(
        self,
        resource_class: type[Resource],
        item: Any,
        where: str,
    ) -> ManagedObject:
        """Parse a single object entry."""
        if not isinstance(item, dict):
            raise ParseError(f"{where}: expected a mapping, got {type(item).__name__}")

        allowed = set(resource_class.field_names())
        unknown = set(item) - allowed - set(CONTROL_KEYS)
        if unknown:
            raise ParseError(f"{where}: unknown field(s) {', '.join(sorted(unknown))}")

        action_str = item.get("action", Action.ENSURE.value)
        try:
            action = Action(action_str)
        except ValueError:
            raise ParseError(
                f"{where}: invalid action '{action_str}'. Must be 'ensure' or 'absent'"
            )

        values = {k: v for k, v in item.items() if k in allowed}
        desired = resource_class(**values)  # type: ignore[call-arg]

        object_id = item.get("id")
        if object_id is None:
            return ManagedObject(desired=desired, action=action)

        if isinstance(object_id, bool) or not isinstance(object_id, int) or object_id <= 0:
            raise ParseError(f"{where}: id must be a positive integer, got {object_id!r}")
        return ManagedObject.adopt(desired, object_id, action=action)


def load_desired_state(path: str) -> list[ManagedObject]:
    """Load and parse a YAML (or JSON) desired state file."""
    try:
        with open(Path(path)) as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {path}: {e}") from e
    return DesiredStateParser().parse(document)
