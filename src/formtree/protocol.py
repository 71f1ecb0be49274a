"""Validatable and composition sink protocols.

A validatable is anything matching the ``Validatable`` shape: a leaf
``FieldState``, a nested ``FormState``, or a user type.  No base class
required.  The form checks the shape, not the lineage.

Composition is explicit.  ``FormState.compose()`` hands each child a
``CompositionSink``; the child calls it after it passes validation and
when it is reinitialized.  A child with no sink is standalone::

    class Checkbox:
        def set_composition_parent(self, sink: CompositionSink | None) -> None:
            self._parent = sink

        async def validate(self) -> Outcome:
            ...
            if self._parent is not None:
                with transaction():
                    self._parent.notify_pass()
            return Pass(self.checked)
"""

from typing import Protocol

from formtree.validation.result import Outcome


class CompositionSink(Protocol):
    """Upward link from a child to the composite that composed it."""

    def notify_pass(self) -> None:
        """The child finished a successful validation."""
        ...

    def notify_reinit(self) -> None:
        """The child was reinitialized and no longer counts as validated."""
        ...


class Validatable(Protocol):
    """Contract shared by fields and forms.

    ``error`` is ``None`` or ``""`` when there is no error.  ``reset()``
    restores the unvalidated state and does not notify the sink.
    ``set_composition_parent`` replaces any previous sink; ``None``
    detaches the node.
    """

    @property
    def error(self) -> str | None: ...

    @property
    def has_error(self) -> bool: ...

    async def validate(self) -> Outcome: ...

    def reset(self) -> None: ...

    def enable_auto_validation(self) -> None: ...

    def disable_auto_validation(self) -> None: ...

    def set_composition_parent(self, sink: CompositionSink | None) -> None: ...
