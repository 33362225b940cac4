from __future__ import annotations

import copy
import inspect
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, fields
from types import TracebackType
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from iocwire.exceptions import IocWireInvalidBindingDeclarationError
from iocwire.injection import positional_parameter_bounds
from iocwire.instrumentation import instrument_class
from iocwire.lock_mode import LockMode
from iocwire.scope import ScopeManager, ScopeSpec, build_scope_manager

if TYPE_CHECKING:
    from typing_extensions import Self

T = TypeVar("T")

logger = logging.getLogger(__name__)

NO_VALUE: Any = object()
"""Sentinel stored in ``Binding.value`` until a literal is configured."""


@dataclass(kw_only=True, slots=True)
class Binding:
    """The registered rule describing how to produce instances for a request key."""

    key: Any
    """Class or value name this binding answers for."""
    target_type: type[Any] | None
    """Concrete class to instantiate. ``None`` for named bindings and factory bindings."""
    scope: ScopeManager
    """Scope manager owned exclusively by this binding."""
    factory: Callable[[], Any] | None = None
    """Producer overriding normal construction."""
    value: Any = NO_VALUE
    """Literal returned for named bindings configured with ``to(value)``."""
    param_keys: list[Any] | None = None
    """Request keys of the constructor parameters, in declaration order."""
    instrumented: bool = False
    """Whether direct construction of the key class is blocked."""

    @property
    def has_value(self) -> bool:
        return self.value is not NO_VALUE


class BindingRegistry:
    """Hold bindings and post-construction property registrations of one container."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._bindings: dict[Any, Binding] = {}
        self._properties: dict[type[Any], dict[str, Any]] = {}
        self._declared_types: set[type[Any]] = set()

    def get(self, key: Any) -> Binding | None:
        return self._bindings.get(key)

    def add(self, binding: Binding) -> Binding:
        with self.lock:
            self._bindings[binding.key] = binding
        return binding

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __iter__(self) -> Iterator[Binding]:
        with self.lock:
            return iter(list(self._bindings.values()))

    def register_property(self, target_type: type[Any], name: str, key: Any) -> None:
        """Record that ``name`` on instances of ``target_type`` is resolved from ``key``."""
        with self.lock:
            self._properties.setdefault(target_type, {})[name] = key

    def register_declared_property(self, target_type: type[Any], name: str, key: Any) -> None:
        """Record an ``inject()`` declaration unless ``name`` was registered explicitly."""
        with self.lock:
            self._properties.setdefault(target_type, {}).setdefault(name, key)

    def properties_for(self, target_type: type[Any]) -> dict[str, Any]:
        """Return the properties of ``target_type``, including those of its bases."""
        properties: dict[str, Any] = {}
        for klass in reversed(target_type.__mro__):
            properties.update(self._properties.get(klass, {}))
        return properties

    def mark_declared(self, target_type: type[Any]) -> bool:
        """Record that class declarations of ``target_type`` were read.

        Returns:
            ``True`` the first time it is called for ``target_type``.

        """
        with self.lock:
            if target_type in self._declared_types:
                return False
            self._declared_types.add(target_type)
            return True

    def snapshot(self, keys: tuple[Any, ...]) -> Snapshot:
        with self.lock:
            selected = [key for key in keys or tuple(self._bindings) if key in self._bindings]
            return Snapshot(
                registry=self,
                keys=keys,
                bindings={key: copy.copy(self._bindings[key]) for key in selected},
                live={key: self._bindings[key] for key in selected},
                properties={
                    target: dict(properties) for target, properties in self._properties.items()
                },
                declared_types=set(self._declared_types),
            )

    def restore(self, snapshot: Snapshot) -> None:
        with self.lock:
            if snapshot.keys:
                for key in snapshot.keys:
                    if key in snapshot.bindings:
                        self._bindings[key] = _restore_binding(
                            snapshot.live[key],
                            snapshot.bindings[key],
                        )
                    else:
                        self._bindings.pop(key, None)
                return
            self._bindings = {
                key: _restore_binding(snapshot.live[key], saved)
                for key, saved in snapshot.bindings.items()
            }
            self._properties = {
                target: dict(properties) for target, properties in snapshot.properties.items()
            }
            self._declared_types = set(snapshot.declared_types)

    def clear(self) -> None:
        with self.lock:
            self._bindings.clear()
            self._properties.clear()
            self._declared_types.clear()


@dataclass(kw_only=True)
class Snapshot:
    """Saved registry state that can be put back with ``restore``.

    Examples:
        .. code-block:: python

            with container.snapshot(Clock):
                container.bind(Clock).to(FrozenClock)
                run_report()
            # Clock is bound as before the snapshot again

    """

    registry: BindingRegistry
    keys: tuple[Any, ...]
    bindings: dict[Any, Binding]
    live: dict[Any, Binding]
    properties: dict[type[Any], dict[str, Any]]
    declared_types: set[type[Any]] = field(default_factory=set)

    def restore(self) -> None:
        """Restore the saved bindings.

        A snapshot of specific keys restores only those keys, removing the ones
        that did not exist when it was taken. A full snapshot also drops every
        binding created after it.
        """
        self.registry.restore(self)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.restore()


class _ConfigBase:
    def __init__(self, binding: Binding, registry: BindingRegistry, lock_mode: LockMode) -> None:
        self._binding = binding
        self._registry = registry
        self._lock_mode = lock_mode

    @property
    def binding(self) -> Binding:
        return self._binding

    def _rebound(self) -> None:
        self._binding.scope = self._binding.scope.renewed()
        logger.debug("Re-bound %r", self._binding.key)

    def _set_scope(self, scope: ScopeSpec) -> None:
        manager = build_scope_manager(scope, lock_mode=self._lock_mode)
        with self._registry.lock:
            self._binding.scope = manager
        logger.debug("Scope of %r set to %s", self._binding.key, type(manager).__name__)

    def _set_factory(self, factory: Callable[[], Any]) -> None:
        if not callable(factory):
            msg = f"Factory for {self._binding.key!r} must be callable, got {factory!r}."
            raise IocWireInvalidBindingDeclarationError(msg)
        with self._registry.lock:
            self._binding.factory = factory
            self._binding.target_type = None
            self._binding.value = NO_VALUE
            self._binding.param_keys = None
            self._rebound()


class BindingConfig(_ConfigBase, Generic[T]):
    """Fluent configuration of a class binding.

    Every method mutates the stored binding in place and returns the config so
    calls can be chained.

    Examples:
        .. code-block:: python

            container.bind(Repository).to(SqlRepository).scope(Scope.SINGLETON)

    """

    def to(self, target: type[Any]) -> BindingConfig[T]:
        """Bind the key to a concrete implementation class.

        Clears a configured factory and any cached instances. Constructor
        parameter keys are inferred again for the new target.

        Args:
            target: Class instantiated when the key is resolved.

        Raises:
            IocWireInvalidBindingDeclarationError: If ``target`` is not a
                concrete class.

        """
        if not inspect.isclass(target):
            msg = f"Binding target must be a class, got {target!r}."
            raise IocWireInvalidBindingDeclarationError(msg)
        if inspect.isabstract(target):
            msg = f"Binding target '{target.__qualname__}' cannot be an abstract class."
            raise IocWireInvalidBindingDeclarationError(msg)
        binding = self.binding
        with self._registry.lock:
            binding.target_type = target
            binding.factory = None
            binding.param_keys = None
            self._rebound()
        return self

    def factory(self, factory: Callable[[], Any]) -> BindingConfig[T]:
        """Produce instances with ``factory`` instead of the constructor.

        Factories are called without arguments and own their dependency
        wiring. Clears the target class and any cached instances.
        """
        self._set_factory(factory)
        return self

    def scope(self, scope: ScopeSpec) -> BindingConfig[T]:
        """Replace the scope manager of the binding.

        Args:
            scope: ``Scope`` member, ``ScopeManager`` subclass or instance.

        Raises:
            IocWireInvalidScopeConfigurationError: If ``scope`` cannot
                resolve instances.

        """
        self._set_scope(scope)
        return self

    def with_params(self, *keys: Any) -> BindingConfig[T]:
        """Declare the request keys of the constructor parameters, in order.

        Raises:
            IocWireInvalidBindingDeclarationError: If the number of keys does
                not fit the positional parameters of the target constructor.

        """
        target = self.binding.target_type
        if target is not None:
            _validate_param_count(target, keys)
        with self._registry.lock:
            self.binding.param_keys = list(keys)
        return self

    def instrument_constructor(self) -> type[T]:
        """Block direct construction of the key class outside the container.

        Returns:
            The instrumented class to use in place of the original.

        """
        key = self.binding.key
        if not inspect.isclass(key):
            msg = f"Only classes can be instrumented, got {key!r}."
            raise IocWireInvalidBindingDeclarationError(msg)
        with self._registry.lock:
            self.binding.instrumented = True
        return instrument_class(key)


class ValueConfig(_ConfigBase):
    """Fluent configuration of a named binding."""

    def to(self, value: Any) -> ValueConfig:
        """Return ``value`` for the name. Clears a configured factory."""
        with self._registry.lock:
            self.binding.value = value
            self.binding.factory = None
            self._rebound()
        return self

    def factory(self, factory: Callable[[], Any]) -> ValueConfig:
        """Produce the value with ``factory`` on every resolution allowed by the scope."""
        self._set_factory(factory)
        return self

    def scope(self, scope: ScopeSpec) -> ValueConfig:
        """Replace the scope manager of the named binding."""
        self._set_scope(scope)
        return self


def _validate_param_count(target: type[Any], keys: tuple[Any, ...]) -> None:
    bounds = positional_parameter_bounds(target)
    if bounds is None:
        return
    required, total = bounds
    if len(keys) < required or (total >= 0 and len(keys) > total):
        expected = f"{required}" if required == total else f"{required} to {total}"
        if total < 0:
            expected = f"at least {required}"
        msg = (
            f"{target.__qualname__}.__init__ takes {expected} positional parameters, "
            f"got {len(keys)} parameter keys."
        )
        raise IocWireInvalidBindingDeclarationError(msg)


def _restore_binding(live: Binding, saved: Binding) -> Binding:
    # scope managers renewed in place were refilled with the re-bound product
    if live.scope is saved.scope and (
        live.target_type is not saved.target_type
        or live.factory is not saved.factory
        or live.value is not saved.value
    ):
        saved.scope.reset()
    for binding_field in fields(Binding):
        setattr(live, binding_field.name, getattr(saved, binding_field.name))
    return live
