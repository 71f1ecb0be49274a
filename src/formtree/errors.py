"""formtree exception hierarchy.

Validation failure is never an exception: a failing field or form returns
``Fail``.  These types cover faults outside the validation contract, so
every module raises and catches the same types.
"""

from typing import Any


class FormTreeError(Exception):
    """Base for all formtree-specific errors."""


class ConfigurationError(FormTreeError):
    """Raised when a form is built from something it cannot hold.

    Typically raised by ``FormState.__init__`` when the subject is not a
    sequence or a mapping of validatables.
    """


class ValidatorError(FormTreeError):
    """A validator raised instead of returning an error message.

    The original exception is chained as ``__cause__``. ``node`` is the
    field or form whose ``validate()`` was running when it happened.
    """

    def __init__(self, node: Any, detail: str = "") -> None:
        self.node = node
        self.detail = detail or "Validator raised during validation"
        super().__init__(self.detail)

    def __str__(self) -> str:
        return f"{type(self.node).__name__}: {self.detail}"
