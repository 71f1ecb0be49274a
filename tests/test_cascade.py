"""Tests for composition and the auto-validation cascade."""

import anyio
import pytest

from formtree.config import FormConfig
from formtree.errors import FormTreeError
from formtree.field import FieldState
from formtree.form import FormState
from formtree.protocol import CompositionSink


class _Counter:
    """Form validator that records how often the form validated itself."""

    def __init__(self, error: str | None = None) -> None:
        self.calls = 0
        self.error = error

    def __call__(self, subject: object) -> str | None:
        self.calls += 1
        return self.error


def _composed(*fields: FieldState, config: FormConfig | None = None) -> tuple[FormState, _Counter]:
    counter = _Counter()
    form = FormState(list(fields), config=config).validators(counter).compose()
    return form, counter


class TestTracking:
    @pytest.mark.anyio
    async def test_passing_child_is_recorded(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, _ = _composed(a, b)

        await a.validate()

        assert form.validated_subfields == (a,)

    @pytest.mark.anyio
    async def test_child_recorded_once(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, _ = _composed(a, b)

        await a.validate()
        await a.validate()

        assert form.validated_subfields == (a,)

    @pytest.mark.anyio
    async def test_failing_child_not_recorded(self) -> None:
        a = FieldState("").validators(lambda value: "required")
        form, _ = _composed(a, FieldState("b"))

        await a.validate()

        assert form.validated_subfields == ()

    @pytest.mark.anyio
    async def test_reinit_removes_child(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, _ = _composed(a, b)
        await a.validate()

        a.reinit("new")

        assert form.validated_subfields == ()

    @pytest.mark.anyio
    async def test_child_added_after_compose_is_not_linked(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)
        late = FieldState("c")
        form.subject.append(late)

        await a.validate()
        await b.validate()
        await late.validate()
        await form.settle()

        assert late not in form.validated_subfields
        assert counter.calls == 0

    @pytest.mark.anyio
    async def test_recompose_links_new_children(self) -> None:
        a = FieldState("a")
        form, counter = _composed(a)
        late = FieldState("b")
        form.subject.append(late)
        form.compose()

        await a.validate()
        await late.validate()
        await form.settle()

        assert counter.calls == 1

    @pytest.mark.anyio
    async def test_removed_child_is_forgotten(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, _ = _composed(a, b)
        await a.validate()

        form.subject.remove(a)

        assert form.validated_subfields == ()
        form.compose()
        form.subject.append(a)
        assert form.validated_subfields == ()

    @pytest.mark.anyio
    async def test_removed_child_does_not_count_toward_cascade(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)
        await a.validate()

        form.subject[0] = FieldState("replacement")
        form.compose()
        await b.validate()
        await form.settle()

        assert counter.calls == 0
        assert form.validated_subfields == (b,)


class TestCascade:
    @pytest.mark.anyio
    async def test_waits_for_every_child(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)

        await a.validate()
        await form.settle()
        assert counter.calls == 0
        assert form.validating is False

        await b.validate()
        assert form.validating is True
        await form.settle()

        assert counter.calls == 1
        assert form.validating is False
        assert form.validated_subfields == (a, b)

    @pytest.mark.anyio
    async def test_reinit_child_blocks_cascade(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)

        await a.validate()
        a.reinit("again")
        await b.validate()
        await form.settle()

        assert counter.calls == 0
        assert form.validating is False

    @pytest.mark.anyio
    async def test_single_pass_after_full_validation_revalidates(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)
        await form.validate()
        assert counter.calls == 1

        await a.validate()
        await form.settle()

        assert counter.calls == 2

    @pytest.mark.anyio
    async def test_field_error_blocks_cascade(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b)
        await a.validate()
        await b.validate()
        await form.settle()
        assert counter.calls == 1

        b.set_error("Taken")
        await a.validate()
        await form.settle()

        assert counter.calls == 1

    @pytest.mark.anyio
    async def test_passing_child_clears_stale_form_error(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        counter = _Counter(error="form broken")
        form = FormState([a, b]).validators(counter).compose()
        await form.validate()
        assert form.form_error == "form broken"

        a.reinit("a2")
        b.reinit("b2")
        await a.validate()
        await form.settle()

        assert form.form_error == ""
        assert counter.calls == 1

    @pytest.mark.anyio
    async def test_cascade_ignores_auto_validation_flag_by_default(self) -> None:
        a = FieldState("a")
        form, counter = _composed(a)
        assert form.auto_validation_enabled is False

        await a.validate()
        await form.settle()

        assert counter.calls == 1

    @pytest.mark.anyio
    async def test_gated_cascade(self) -> None:
        a = FieldState("a")
        form, counter = _composed(a, config=FormConfig(cascade_requires_auto_validation=True))

        await a.validate()
        await form.settle()
        assert counter.calls == 0

        form.enable_auto_validation()
        await a.validate()
        await form.settle()
        assert counter.calls == 1

    @pytest.mark.anyio
    async def test_nested_forms_cascade_upward(self) -> None:
        x, y, z = FieldState("x"), FieldState("y"), FieldState("z")
        inner_counter, outer_counter = _Counter(), _Counter()
        inner = FormState([x, y]).validators(inner_counter).compose()
        outer = FormState({"inner": inner, "z": z}).validators(outer_counter).compose()

        await z.validate()
        await x.validate()
        await y.validate()
        await outer.settle()

        assert outer_counter.calls == 1
        assert inner_counter.calls == 2
        assert outer.validating is False
        assert inner.validating is False

    @pytest.mark.anyio
    async def test_failed_background_validation_is_logged(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        def broken(subject: object) -> str | None:
            raise RuntimeError("boom")

        a = FieldState("a")
        form = FormState([a]).validators(broken).compose()

        await a.validate()
        await form.settle()

        assert "Cascaded validation" in caplog.text
        assert form.validating is False


class TestSerializedCascade:
    @pytest.mark.anyio
    async def test_cascade_queued_behind_validate_runs_once(self) -> None:
        a, b = FieldState("a"), FieldState("b")
        form, counter = _composed(a, b, config=FormConfig(serialize_validation=True))

        await a.validate()
        await b.validate()
        await form.validate()
        with anyio.fail_after(2):
            await form.settle()

        assert counter.calls == 2
        assert form.validating is False

    @pytest.mark.anyio
    async def test_queued_cascade_marks_validating_while_running(self) -> None:
        seen: list[bool] = []
        a = FieldState("a")
        form = FormState([a], config=FormConfig(serialize_validation=True))
        form.validators(lambda subject: seen.append(form.validating)).compose()

        await a.validate()
        await form.validate()
        with anyio.fail_after(2):
            await form.settle()

        assert seen == [True, True]
        assert form.validating is False


class _SinkCapture(FieldState):
    """Field that keeps the sink its form installs."""

    sink: CompositionSink | None = None

    def set_composition_parent(self, sink: CompositionSink | None) -> None:
        super().set_composition_parent(sink)
        self.sink = sink


class TestEventLoop:
    def test_cascade_without_asyncio_loop_raises(self) -> None:
        a = _SinkCapture("a")
        form, counter = _composed(a)

        with pytest.raises(FormTreeError, match="no asyncio event loop"):
            a.sink.notify_pass()

        assert form.validating is False
        assert counter.calls == 0
