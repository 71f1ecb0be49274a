"""Child collections — one view over the three subject shapes.

A form's subject is a list of validatables, a ``str``-keyed mapping, or a
mapping with arbitrary keys.  The shape is inferred once and frozen in a
``Children`` variant; everything above this module iterates
``children.values()`` and never branches on the mode.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from formtree.errors import ConfigurationError
from formtree.protocol import Validatable


class Mode(Enum):
    """Structural shape of a form's subject, fixed at construction."""

    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"


def infer_mode(subject: Any) -> Mode:
    """Classify *subject* by its runtime shape.

    Strings and bytes are sequences, but never of validatables, so they
    are rejected along with every other unsupported type.
    """
    if isinstance(subject, Mapping):
        if all(isinstance(key, str) for key in subject):
            return Mode.OBJECT
        return Mode.MAP
    if isinstance(subject, Sequence) and not isinstance(subject, (str, bytes, bytearray)):
        return Mode.ARRAY
    msg = (
        f"Cannot build a form from {type(subject).__name__!r}: expected a sequence "
        "or a mapping of validatables"
    )
    raise ConfigurationError(msg)


class Children(ABC):
    """Base for the per-mode child views.

    Holds a reference to the subject, not a copy, so structural edits made
    by the caller are picked up on the next read.
    """

    __slots__ = ("subject",)

    mode: Mode

    def __init__(self, subject: Any) -> None:
        self.subject = subject

    @abstractmethod
    def values(self) -> list[Validatable]: ...

    @abstractmethod
    def items(self) -> list[tuple[Any, Validatable]]: ...

    def __len__(self) -> int:
        return len(self.subject)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} children)"


class ArrayChildren(Children):
    """Children in sequence order; keys are indexes."""

    __slots__ = ()
    mode = Mode.ARRAY

    def values(self) -> list[Validatable]:
        return list(self.subject)

    def items(self) -> list[tuple[Any, Validatable]]:
        return list(enumerate(self.subject))


class ObjectChildren(Children):
    """Children in key enumeration order of a ``str``-keyed mapping."""

    __slots__ = ()
    mode = Mode.OBJECT

    def values(self) -> list[Validatable]:
        return [self.subject[key] for key in self.subject]

    def items(self) -> list[tuple[Any, Validatable]]:
        return [(key, self.subject[key]) for key in self.subject]


class MapChildren(Children):
    """Children in the mapping's native iteration order; any hashable keys."""

    __slots__ = ()
    mode = Mode.MAP

    def values(self) -> list[Validatable]:
        return list(self.subject.values())

    def items(self) -> list[tuple[Any, Validatable]]:
        return list(self.subject.items())


_VIEWS: dict[Mode, type[Children]] = {
    Mode.ARRAY: ArrayChildren,
    Mode.OBJECT: ObjectChildren,
    Mode.MAP: MapChildren,
}


def children_of(subject: Any, mode: Mode | None = None) -> Children:
    """Build the child view for *subject*, inferring the mode if not given."""
    return _VIEWS[mode or infer_mode(subject)](subject)
