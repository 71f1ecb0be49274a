"""FormState — validate a tree of fields and sub-forms as one unit.

A form owns a subject (a list, a ``str``-keyed mapping, or a mapping with
any keys) whose values are validatables.  ``validate()`` fans out to every
child concurrently, joins the results, then runs the form's own validators
against the whole subject.

Pipeline::

    form = FormState({"password": password, "confirm": confirm})
    form.validators(passwords_match)

    1. Mark the form as validating
    2. Validate every child concurrently (anyio task group), no early exit
    3. Any child failed -> Fail(); form validators are skipped
    4. Run form validators in order against the subject
    5. Store the form error; Pass(subject) if it is empty

Composition::

    form.compose()

installs a sink into every current child.  When a child passes it is
recorded; once every child has passed and no field has an error, the form
validates itself in the background.  A reinitialized child is forgotten
until it passes again.

Background validations are asyncio tasks, so composed forms need an
asyncio event loop (directly, or through anyio's asyncio backend).  A
cascade started anywhere else raises ``FormTreeError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import anyio

from formtree.children import Children, Mode, children_of
from formtree.config import FormConfig
from formtree.errors import FormTreeError, ValidatorError
from formtree.protocol import CompositionSink, Validatable
from formtree.reactive import ChangeNotifier, detached_context, transaction
from formtree.validation import Validator, apply_validators
from formtree.validation.result import Fail, Outcome, Pass

logger = logging.getLogger("formtree.form")


class _ChildLink:
    """Sink installed into one child by ``FormState.compose()``."""

    __slots__ = ("child", "form")

    def __init__(self, form: FormState, child: Validatable) -> None:
        self.form = form
        self.child = child

    def notify_pass(self) -> None:
        self.form._child_passed(self.child)

    def notify_reinit(self) -> None:
        self.form._child_reinit(self.child)


class FormState:
    """A validatable composed of other validatables.

    Usable anywhere a field is, including as a child of another form.

    Args:
        subject: Children as a list, a ``str``-keyed mapping, or a mapping
            with arbitrary keys.  Held by reference; the mode is inferred
            here and never changes.
        config: Behavioral switches; see ``FormConfig``.

    Raises:
        ConfigurationError: If *subject* is not a sequence or mapping.
    """

    def __init__(self, subject: Any, *, config: FormConfig | None = None) -> None:
        self._children: Children = children_of(subject)
        self.config = config or FormConfig()
        self.changes = ChangeNotifier(self)

        self._validators: list[Validator] = []
        self._error: str | None = ""
        self._validating = False
        self._auto_validation_enabled = False
        self._validated_subfields: list[Validatable] = []
        self._parent: CompositionSink | None = None
        self._background: set[asyncio.Task[None]] = set()
        self._lock = anyio.Lock() if self.config.serialize_validation else None

        if self.config.auto_validation:
            self.enable_auto_validation()

    def __repr__(self) -> str:
        return f"FormState(mode={self.mode.value}, children={len(self._children)})"

    # -- Structure --

    @property
    def subject(self) -> Any:
        """The list or mapping of children this form was built with."""
        return self._children.subject

    @property
    def mode(self) -> Mode:
        return self._children.mode

    @property
    def children(self) -> Children:
        return self._children

    def validators(self, *validators: Validator) -> FormState:
        """Replace the form-level validators.  Returns the form for chaining."""
        self._validators = list(validators)
        return self

    # -- Derived state --

    @property
    def validating(self) -> bool:
        """True while a validation pass is running.  Advisory, not a lock."""
        return self._validating

    @property
    def has_error(self) -> bool:
        """Does any field or the form itself have an error."""
        return self.has_field_error or self.has_form_error

    @property
    def has_field_error(self) -> bool:
        return any(child.has_error for child in self._children.values())

    @property
    def has_form_error(self) -> bool:
        return bool(self._error)

    @property
    def field_error(self) -> str | None:
        """Error of the first child that has one, in child order."""
        for child in self._children.values():
            if child.has_error:
                return child.error
        return None

    @property
    def form_error(self) -> str | None:
        """Error from the form validators.  ``""`` until they first run."""
        return self._error

    @property
    def error(self) -> str | None:
        """The first field error, or else the form error."""
        return self.field_error or self.form_error

    @property
    def show_form_error(self) -> bool:
        """Only show the form error while no field has an error."""
        return not self.has_field_error and self.has_form_error

    @property
    def validated_subfields(self) -> tuple[Validatable, ...]:
        """Current children that passed since they were last reinitialized."""
        current = {id(child) for child in self._children.values()}
        return tuple(v for v in self._validated_subfields if id(v) in current)

    def clear_form_error(self) -> None:
        """Drop the form error.  Call it when reinitializing child fields."""
        with transaction():
            if self._error != "":
                self._error = ""
                self.changes.mark("form_error")

    # -- Validation --

    async def validate(self) -> Outcome:
        """Validate every child, then the form itself.

        Returns:
            ``Pass(subject)`` when every child passed and no form validator
            returned an error, else ``Fail``.

        Raises:
            ValidatorError: A child or form validator raised.  ``validating``
                is reset before the error propagates.
        """
        if self._lock is None:
            self._begin_validation()
            return await self._run_validation()
        async with self._lock:
            self._begin_validation()
            return await self._run_validation()

    def _begin_validation(self) -> None:
        with transaction():
            self._set_validating(True)

    def _set_validating(self, value: bool) -> None:
        if self._validating != value:
            self._validating = value
            self.changes.mark("validating")

    async def _run_validation(self) -> Outcome:
        logger.debug("Validating %r", self)
        try:
            outcomes = await self._validate_children()
            if any(outcome.has_error for outcome in outcomes):
                with transaction():
                    self._set_validating(False)
                logger.debug("%r failed on field errors", self)
                return Fail()

            try:
                error = await apply_validators(self.subject, self._validators)
            except Exception as exc:
                raise ValidatorError(self, "Form validator raised") from exc
        except BaseException:
            with transaction():
                self._set_validating(False)
            raise

        with transaction():
            if error != self._error:
                self._error = error
                self.changes.mark("form_error")
            self._set_validating(False)

            if error:
                logger.debug("%r failed: %s", self, error)
                return Fail(error)

            self._notify_parent_pass()
            return Pass(self.subject)

    async def _validate_children(self) -> list[Outcome]:
        children = self._children.values()
        outcomes: list[Outcome] = [Fail()] * len(children)

        async def _validate_one(index: int, child: Validatable) -> None:
            outcomes[index] = await child.validate()

        try:
            async with anyio.create_task_group() as tg:
                for index, child in enumerate(children):
                    tg.start_soon(_validate_one, index, child)
        except ExceptionGroup as group:
            cause = group.exceptions[0] if len(group.exceptions) == 1 else group
            raise ValidatorError(self, "Child validation raised") from cause

        return outcomes

    def reset(self) -> None:
        """Reset every child and drop the form error."""
        with transaction():
            for child in self._children.values():
                child.reset()
            self.clear_form_error()

    # -- Auto validation --

    @property
    def auto_validation_enabled(self) -> bool:
        return self._auto_validation_enabled

    def enable_auto_validation(self) -> None:
        with transaction():
            self._set_auto_validation(True)
            for child in self._children.values():
                child.enable_auto_validation()

    def disable_auto_validation(self) -> None:
        with transaction():
            self._set_auto_validation(False)
            for child in self._children.values():
                child.disable_auto_validation()

    async def enable_auto_validation_and_validate(self) -> Outcome:
        self.enable_auto_validation()
        return await self.validate()

    def _set_auto_validation(self, value: bool) -> None:
        if self._auto_validation_enabled != value:
            self._auto_validation_enabled = value
            self.changes.mark("auto_validation_enabled")

    # -- Composition --

    def compose(self) -> FormState:
        """Link every current child to this form.

        Re-run after adding or replacing children; links are not updated
        automatically.
        """
        with transaction():
            self._prune_validated()
        for child in self._children.values():
            child.set_composition_parent(_ChildLink(self, child))
        return self

    def set_composition_parent(self, sink: CompositionSink | None) -> None:
        self._parent = sink

    def _notify_parent_pass(self) -> None:
        if self._parent is not None:
            with transaction():
                self._parent.notify_pass()

    def _child_reinit(self, child: Validatable) -> None:
        with transaction():
            remaining = [v for v in self._validated_subfields if v is not child]
            if len(remaining) != len(self._validated_subfields):
                self._validated_subfields = remaining
                self.changes.mark("validated_subfields")

    def _child_passed(self, child: Validatable) -> None:
        with transaction():
            # A passing child makes the last form error stale
            if self.has_form_error:
                self.clear_form_error()

            self._prune_validated()
            if not any(v is child for v in self._validated_subfields):
                self._validated_subfields.append(child)
                self.changes.mark("validated_subfields")

            if self._should_cascade():
                self._start_cascade()

    def _prune_validated(self) -> None:
        current = {id(child) for child in self._children.values()}
        remaining = [v for v in self._validated_subfields if id(v) in current]
        if len(remaining) != len(self._validated_subfields):
            self._validated_subfields = remaining
            self.changes.mark("validated_subfields")

    def _should_cascade(self) -> bool:
        if self.config.cascade_requires_auto_validation and not self._auto_validation_enabled:
            return False
        if self.has_field_error or self._validating:
            return False
        validated = {id(v) for v in self._validated_subfields}
        return all(id(child) in validated for child in self._children.values())

    def _start_cascade(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            msg = (
                f"{self!r} cannot validate itself in the background: cascades run "
                "as asyncio tasks and no asyncio event loop is running"
            )
            raise FormTreeError(msg) from None
        logger.debug("All children of %r passed, validating form", self)
        # Marked now so sibling passes in the same tick do not cascade twice
        self._begin_validation()
        task = loop.create_task(self._cascade(), context=detached_context())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _cascade(self) -> None:
        try:
            if self._lock is None:
                await self._run_validation()
            else:
                async with self._lock:
                    # The previous holder cleared the flag on its way out
                    self._begin_validation()
                    await self._run_validation()
        except Exception:
            logger.exception("Cascaded validation of %r failed", self)

    async def settle(self) -> None:
        """Wait until no cascaded validation is pending here or in sub-forms."""
        while pending := self._pending_cascades():
            await asyncio.wait(pending)

    def _pending_cascades(self) -> set[asyncio.Task[None]]:
        pending = {task for task in self._background if not task.done()}
        for child in self._children.values():
            if isinstance(child, FormState):
                pending |= child._pending_cascades()
        return pending
