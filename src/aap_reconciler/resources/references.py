"""Foreign reference handling.

Callers may give references as ints or as the string ids they got back from
earlier operations. Before a request is issued each reference is parsed into
one of three variants:

- Unset: absent, empty, or a non-positive id; left out of the request
- Ref(id): a positive object id
- InvalidRef(raw): anything else; raised as InvalidReference
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional, TypeVar, Union

from ..errors import InvalidReference
from .schema import Resource

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)


@dataclass(frozen=True)
class Unset:
    """No reference."""


@dataclass(frozen=True)
class Ref:
    """Reference to an existing object."""
    id: int


@dataclass(frozen=True)
class InvalidRef:
    """Input that cannot be a reference."""
    raw: Any


Reference = Union[Unset, Ref, InvalidRef]

UNSET = Unset()


def parse_reference(raw: Any) -> Reference:
    """
    Parse a caller-supplied reference.

    Examples:
        None, "", 0, "0", -3  -> Unset
        7, "7", " 7 "         -> Ref(7)
        "abc", 1.5, True      -> InvalidRef(raw)
    """
    if raw is None:
        return UNSET

    # bool is an int subclass but never a valid id
    if isinstance(raw, bool):
        return InvalidRef(raw)

    if isinstance(raw, int):
        return Ref(raw) if raw > 0 else UNSET

    if isinstance(raw, float):
        if raw.is_integer():
            return Ref(int(raw)) if raw > 0 else UNSET
        return InvalidRef(raw)

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return UNSET
        try:
            value = int(text)
        except ValueError:
            return InvalidRef(raw)
        return Ref(value) if value > 0 else UNSET

    return InvalidRef(raw)


class ReferenceResolver:
    """Translate reference fields between caller form and object ids."""

    def resolve(self, record: R) -> R:
        """
        Return a copy of ``record`` with every reference field as an int or None.

        Raises:
            InvalidReference: If any reference field holds unparsable input
        """
        changes: dict[str, Optional[int]] = {}

        for name in record.REFERENCES:
            raw = getattr(record, name)
            ref = parse_reference(raw)

            if isinstance(ref, InvalidRef):
                raise InvalidReference(name, ref.raw)

            if isinstance(ref, Ref):
                changes[name] = ref.id
            else:
                if raw is not None:
                    logger.debug(f"{record.label}: dropping unset reference {name}={raw!r}")
                changes[name] = None

        return replace(record, **changes)  # type: ignore[type-var]

    def to_symbolic(self, record: Resource) -> dict[str, Optional[str]]:
        """Map each reference field to its string id, or None when unset."""
        symbolic: dict[str, Optional[str]] = {}
        for name in record.REFERENCES:
            ref = parse_reference(getattr(record, name))
            symbolic[name] = str(ref.id) if isinstance(ref, Ref) else None
        return symbolic
