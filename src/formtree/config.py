"""Form configuration.

FormConfig is a frozen dataclass: immutable after creation, no string-key
dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FormConfig:
    """Behavioral switches for a ``FormState``. Immutable after creation.

    The defaults reproduce the classic behavior. Override what you need::

        config = FormConfig(serialize_validation=True)
        form = FormState({"name": name}, config=config)
    """

    # Overlapping validate() calls interleave unless this is set
    serialize_validation: bool = False

    # Only cascade into the parent while auto-validation is enabled
    cascade_requires_auto_validation: bool = False

    # Initial auto-validation state, pushed down to children on construction
    auto_validation: bool = False
