"""Validation outcomes — immutable markers for pass or fail."""

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias


@dataclass(frozen=True, slots=True)
class Pass:
    """A successful validation carrying the validated value.

    The outcome is truthy, so you can write::

        outcome = await form.validate()
        if outcome:
            save(outcome.value)
    """

    value: Any

    @property
    def has_error(self) -> Literal[False]:
        return False

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Fail:
    """A failed validation.

    ``error`` is the message that caused the failure when one is known.
    A form whose fields failed returns ``Fail()`` and leaves the messages
    on the fields themselves.
    """

    error: str | None = None

    @property
    def has_error(self) -> Literal[True]:
        return True

    def __bool__(self) -> bool:
        """Falsy, which enables the ``if not outcome:`` pattern."""
        return False


Outcome: TypeAlias = Pass | Fail
