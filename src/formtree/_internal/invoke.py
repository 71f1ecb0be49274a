"""Invoke helper — call sync or async validators uniformly.

Validators can be ``def`` or ``async def``. Any code that runs a
user-provided validator must handle both cases, so the sync/async check
lives here and nowhere else.

Usage::

    from formtree._internal.invoke import invoke

    message = await invoke(validator, value)
"""

import inspect
from typing import Any


async def invoke(fn: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *fn* and await the result if it is awaitable.

    Works with both sync and async callables::

        def not_blank(value):
            return None if value.strip() else "Required"

        async def username_free(value):
            taken = await directory.exists(value)
            return "Already taken" if taken else None
    """
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
