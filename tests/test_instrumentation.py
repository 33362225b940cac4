"""Tests for container-only constructors."""

from typing import Annotated

import pytest

from iocwire.container import Container
from iocwire.exceptions import (
    IocWireInstantiationBlockedError,
    IocWireInvalidBindingDeclarationError,
)
from iocwire.instrumentation import construction_guard, instrument_class, is_instrumented
from iocwire.scope import Scope


class Clock:
    pass


def _make_guarded() -> type:
    class Guarded:
        def __init__(self, clock: Clock) -> None:
            self.clock = clock

    return Guarded


class TestInstrumentConstructor:
    def test_direct_construction_is_rejected(self, container: Container) -> None:
        guarded = container.instrument_constructor(_make_guarded())

        with pytest.raises(IocWireInstantiationBlockedError, match="instantiation is blocked"):
            guarded(Clock())

    def test_container_construction_is_accepted(self, container: Container) -> None:
        guarded = container.instrument_constructor(_make_guarded())

        instance = container.resolve(guarded)

        assert isinstance(instance, guarded)
        assert isinstance(instance.clock, Clock)

    def test_binding_is_marked_instrumented(self, container: Container) -> None:
        guarded = _make_guarded()

        container.instrument_constructor(guarded)

        assert container.bind(guarded).binding.instrumented is True
        assert is_instrumented(guarded)

    def test_class_identity_is_preserved(self, container: Container) -> None:
        original = _make_guarded()

        instrumented = container.instrument_constructor(original)

        assert instrumented is original
        assert instrumented.__init__.__name__ == "__init__"

    def test_blocked_error_is_type_error(self, container: Container) -> None:
        guarded = container.instrument_constructor(_make_guarded())

        with pytest.raises(TypeError):
            guarded(Clock())

    def test_instrumenting_twice_is_noop(self, container: Container) -> None:
        guarded = _make_guarded()
        container.instrument_constructor(guarded)
        wrapped_init = guarded.__init__

        container.instrument_constructor(guarded)

        assert guarded.__init__ is wrapped_init
        assert isinstance(container.resolve(guarded), guarded)

    def test_instrumented_singleton(self, container: Container) -> None:
        guarded = container.instrument_constructor(_make_guarded())
        container.bind(guarded).scope(Scope.SINGLETON)

        assert container.resolve(guarded) is container.resolve(guarded)

    def test_only_classes_can_be_instrumented(self, container: Container) -> None:
        config = container.bind(Annotated[Clock, "wall"])  # type: ignore[arg-type]

        with pytest.raises(IocWireInvalidBindingDeclarationError, match="Only classes"):
            config.instrument_constructor()


class TestSubclassing:
    def test_subclass_inherits_restriction(self, container: Container) -> None:
        base = container.instrument_constructor(_make_guarded())

        class Child(base):  # type: ignore[misc,valid-type]
            pass

        with pytest.raises(IocWireInstantiationBlockedError):
            Child(Clock())
        assert isinstance(container.resolve(Child), base)

    def test_subclass_with_own_constructor_calls_super(self, container: Container) -> None:
        base = container.instrument_constructor(_make_guarded())

        class Child(base):  # type: ignore[misc,valid-type]
            def __init__(self, clock: Clock) -> None:
                super().__init__(clock)
                self.ready = True

        child = container.resolve(Child)

        assert child.ready is True
        assert isinstance(child.clock, Clock)

    def test_instrumented_subclass_of_instrumented_base(self, container: Container) -> None:
        base = container.instrument_constructor(_make_guarded())

        class Child(base):  # type: ignore[misc,valid-type]
            def __init__(self, clock: Clock) -> None:
                super().__init__(clock)

        container.instrument_constructor(Child)

        assert isinstance(container.resolve(Child), Child)
        with pytest.raises(IocWireInstantiationBlockedError):
            Child(Clock())

    def test_objects_built_inside_constructor_are_blocked(self, container: Container) -> None:
        inner = container.instrument_constructor(_make_guarded())

        class Outer:
            def __init__(self) -> None:
                self.inner = inner(Clock())

        with pytest.raises(IocWireInstantiationBlockedError):
            container.resolve(Outer)

    def test_instrumented_dependency_of_instrumented_class(
        self,
        container: Container,
    ) -> None:
        inner = container.instrument_constructor(_make_guarded())

        class Outer:
            def __init__(self, dependency: inner) -> None:  # type: ignore[valid-type]
                self.dependency = dependency

        container.instrument_constructor(Outer)

        assert isinstance(container.resolve(Outer).dependency, inner)


class TestConstructionGuard:
    def test_guard_allows_target_inside_block(self) -> None:
        guarded = instrument_class(_make_guarded())

        with construction_guard(guarded):
            instance = guarded(Clock())

        assert isinstance(instance, guarded)
        with pytest.raises(IocWireInstantiationBlockedError):
            guarded(Clock())

    def test_guard_for_other_target_rejects(self) -> None:
        guarded = instrument_class(_make_guarded())

        with construction_guard(Clock), pytest.raises(IocWireInstantiationBlockedError):
            guarded(Clock())
