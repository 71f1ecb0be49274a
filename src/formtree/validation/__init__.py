"""Validators and outcomes — run user checks, return clean results.

A validator is any callable taking a value (a field's value, or a form's
whole subject) and returning an error message, or ``None``/``""`` when the
value is valid.  It may be ``async def``.

Usage::

    from formtree import FieldState, FormState

    def not_blank(value):
        return None if value.strip() else "This field is required"

    form = FormState({"title": FieldState("").validators(not_blank)})
    outcome = await form.validate()
    if not outcome:
        return render_errors(form.error)
    # outcome.value is the subject
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeAlias

from formtree._internal.invoke import invoke
from formtree.validation.result import Fail, Outcome, Pass

__all__ = [
    "Fail",
    "Outcome",
    "Pass",
    "Validator",
    "apply_validators",
]

# A validator returns an error message, or None/"" when the value is valid
Validator: TypeAlias = Callable[[Any], str | None | Awaitable[str | None]]


async def apply_validators(value: Any, validators: Sequence[Validator]) -> str | None:
    """Run *validators* in order against *value*.

    Args:
        value: A field value, or the whole subject for form-level checks.
        validators: Sync or async callables returning an error message,
            or ``None``/``""`` on success.

    Returns:
        The first non-empty message, or ``None`` when every validator
        passed.  Validators after the first failure are not called.

    Exceptions raised by a validator propagate unchanged.
    """
    for validator in validators:
        error = await invoke(validator, value)
        if error:
            return error
    return None
