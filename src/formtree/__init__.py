"""formtree — validation composition for hierarchical form state.

Fields and nested forms validate individually or together; errors
aggregate upward and composed forms re-validate themselves once every
child has passed.

Basic usage::

    from formtree import FieldState, FormState

    def not_blank(value):
        return None if value.strip() else "This field is required"

    form = FormState({
        "name": FieldState("").validators(not_blank),
        "tags": FormState([FieldState("a"), FieldState("b")]),
    }).compose()

    outcome = await form.validate()
    if not outcome:
        print(form.error)
"""

__version__ = "0.1.0-dev"
__all__ = [
    "ChangeEvent",
    "CompositionSink",
    "ConfigurationError",
    "Fail",
    "FieldState",
    "FormConfig",
    "FormState",
    "FormTreeError",
    "Mode",
    "Outcome",
    "Pass",
    "Validatable",
    "ValidatorError",
    "transaction",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import formtree`` fast while providing a clean top-level API.
    """
    if name == "FormState":
        from formtree.form import FormState

        return FormState

    if name == "FieldState":
        from formtree.field import FieldState

        return FieldState

    if name == "FormConfig":
        from formtree.config import FormConfig

        return FormConfig

    if name == "Mode":
        from formtree.children import Mode

        return Mode

    if name in ("Fail", "Outcome", "Pass"):
        from formtree.validation import result as _result

        return getattr(_result, name)

    if name in ("CompositionSink", "Validatable"):
        from formtree import protocol as _protocol

        return getattr(_protocol, name)

    if name in ("ChangeEvent", "transaction"):
        from formtree import reactive as _reactive

        return getattr(_reactive, name)

    if name in ("ConfigurationError", "FormTreeError", "ValidatorError"):
        from formtree import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
