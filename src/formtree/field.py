"""FieldState — a single validated value.

The leaf of a form tree.  Holds a value and its validators; validation is
run when the caller asks for it, never on a timer::

    name = FieldState("").validators(not_blank, shorter_than_40)
    name.on_change("Ada")
    outcome = await name.validate()

With auto-validation enabled, ``await field.change(value)`` validates
right after setting the value.
"""

from __future__ import annotations

import logging
from typing import Any

from formtree.errors import ValidatorError
from formtree.protocol import CompositionSink
from formtree.reactive import ChangeNotifier, transaction
from formtree.validation import Validator, apply_validators
from formtree.validation.result import Fail, Outcome, Pass

logger = logging.getLogger("formtree.field")


class FieldState:
    """A value plus the validators that guard it."""

    def __init__(self, value: Any = None) -> None:
        self.changes = ChangeNotifier(self)
        self._initial_value = value
        self._value = value
        self._error: str | None = None
        self._validating = False
        self._dirty = False
        self._auto_validation_enabled = False
        self._validators: list[Validator] = []
        self._parent: CompositionSink | None = None

    def __repr__(self) -> str:
        return f"FieldState(value={self._value!r}, error={self._error!r})"

    @property
    def value(self) -> Any:
        return self._value

    @property
    def initial_value(self) -> Any:
        return self._initial_value

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def has_error(self) -> bool:
        return bool(self._error)

    @property
    def validating(self) -> bool:
        return self._validating

    @property
    def dirty(self) -> bool:
        """True once the value was changed through ``on_change``."""
        return self._dirty

    @property
    def auto_validation_enabled(self) -> bool:
        return self._auto_validation_enabled

    def validators(self, *validators: Validator) -> FieldState:
        """Replace the validators.  Returns the field for chaining."""
        self._validators = list(validators)
        return self

    def on_change(self, value: Any) -> None:
        with transaction():
            self._value = value
            self._dirty = True
            self.changes.mark("value", "dirty")

    async def change(self, value: Any) -> Outcome | None:
        """Set the value and validate if auto-validation is enabled.

        Returns the outcome, or ``None`` when no validation ran.
        """
        self.on_change(value)
        if self._auto_validation_enabled:
            return await self.validate()
        return None

    def set_error(self, error: str | None) -> None:
        """Set an error from outside the validators (e.g. a server response)."""
        with transaction():
            self._error = error
            self.changes.mark("error")

    async def validate(self) -> Outcome:
        with transaction():
            self._validating = True
            self.changes.mark("validating")

        value = self._value
        try:
            error = await apply_validators(value, self._validators)
        except Exception as exc:
            with transaction():
                self._validating = False
                self.changes.mark("validating")
            raise ValidatorError(self, f"Validator raised for value {value!r}") from exc

        with transaction():
            self._validating = False
            self._error = error
            self.changes.mark("validating", "error")
            if error:
                return Fail(error)
            if self._parent is not None:
                self._parent.notify_pass()
            return Pass(value)

    def reset(self) -> None:
        """Restore the initial value and clear the error."""
        with transaction():
            self._value = self._initial_value
            self._error = None
            self._dirty = False
            self.changes.mark("value", "error", "dirty")

    def reinit(self, value: Any = None) -> None:
        """Start over from a new initial value.

        Unlike ``reset()``, this tells the composing form that the field
        no longer counts as validated.
        """
        with transaction():
            self._initial_value = value
            self.reset()
            if self._parent is not None:
                self._parent.notify_reinit()
        logger.debug("Reinitialized %r", self)

    def enable_auto_validation(self) -> None:
        with transaction():
            self._auto_validation_enabled = True
            self.changes.mark("auto_validation_enabled")

    def disable_auto_validation(self) -> None:
        with transaction():
            self._auto_validation_enabled = False
            self.changes.mark("auto_validation_enabled")

    def set_composition_parent(self, sink: CompositionSink | None) -> None:
        self._parent = sink
