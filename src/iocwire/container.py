from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar, overload

from iocwire.autobinding import AutobindingPolicy
from iocwire.bindings import Binding, BindingConfig, BindingRegistry, Snapshot, ValueConfig
from iocwire.configuration import ConfigurationLoader
from iocwire.exceptions import (
    IocWireInvalidBindingDeclarationError,
    IocWireUnresolvableBindingError,
)
from iocwire.injection import DeclarationInspector, InjectedCallableInspector
from iocwire.instrumentation import construction_guard
from iocwire.lock_mode import LockMode
from iocwire.resolution import current_token, resolution_context
from iocwire.scope import Scope, ScopeSpec, build_scope_manager

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)
_UNSET: Any = object()


class Container:
    """Manage bindings, resolve object graphs and own instance lifetimes.

    Request keys are classes or string names. Classes that were never bound
    are bound to themselves on first request (autobinding) unless the
    container is created with ``autobind=False``. Names must always be bound
    with ``bind_name`` first.

    Resolution is synchronous and reentrant: constructor parameters are
    resolved left to right before the constructor runs, registered properties
    are assigned right after it, and a key requested twice on the same call
    chain fails with ``IocWireCircularDependencyError``.
    """

    def __init__(
        self,
        default_scope: Scope = Scope.TRANSIENT,
        *,
        lock_mode: LockMode = LockMode.THREAD,
        autobind: bool = True,
        environment: str | None = None,
    ) -> None:
        """Initialize a container and configure default binding behavior.

        Args:
            default_scope: Scope given to new class bindings, explicit or
                auto-bound.
            lock_mode: Locking strategy for first singleton creation.
            autobind: Bind unseen concrete classes to themselves on request.
            environment: Active environment for ``load_config`` entries
                grouped under ``env``.

        Examples:
            .. code-block:: python

                container = Container()

                strict_container = Container(autobind=False)

                single_threaded = Container(lock_mode=LockMode.NONE)

        """
        self._default_scope = default_scope
        self._lock_mode = lock_mode
        self._autobind_enabled = autobind
        self._environment = environment

        self._registry = BindingRegistry()
        self._autobinding_policy = AutobindingPolicy()
        self._declaration_inspector = DeclarationInspector()
        self._injected_callable_inspector = InjectedCallableInspector()

    @property
    def environment(self) -> str | None:
        return self._environment

    # region Registration Methods
    def bind(self, key: type[T]) -> BindingConfig[T]:
        """Return the configuration of the binding for a class, creating it if needed.

        A new binding targets the class itself with the container default
        scope. Calling ``bind`` again returns a config for the same stored
        binding; nothing is reset until a production rule is changed.

        Args:
            key: Class to bind.

        Returns:
            Fluent config mutating the stored binding.

        Raises:
            IocWireInvalidBindingDeclarationError: If ``key`` is a string. Use
                ``bind_name`` for named values.

        Examples:
            .. code-block:: python

                container.bind(Repository).to(SqlRepository)
                container.bind(Clock).factory(SystemClock.from_env).scope(Scope.SINGLETON)

        """
        if isinstance(key, str):
            msg = f"Use bind_name({key!r}) to bind a named value."
            raise IocWireInvalidBindingDeclarationError(msg)
        with self._registry.lock:
            binding = self._registry.get(key) or self._add_binding(
                key,
                target_type=key if inspect.isclass(key) else None,
                scope=self._default_scope,
            )
        return BindingConfig(binding, self._registry, self._lock_mode)

    def bind_name(self, name: str) -> ValueConfig:
        """Return the configuration of a named binding, creating it if needed.

        The binding must receive ``to(value)`` or ``factory(fn)`` before it can
        be resolved.

        Args:
            name: Value name.

        """
        if not isinstance(name, str):
            msg = f"bind_name expects a string, got {name!r}. Use bind() for classes."
            raise IocWireInvalidBindingDeclarationError(msg)
        with self._registry.lock:
            binding = self._registry.get(name) or self._add_binding(
                name,
                target_type=None,
                scope=Scope.TRANSIENT,
            )
        return ValueConfig(binding, self._registry, self._lock_mode)

    def configure(
        self,
        key: Any,
        *,
        to: Any = _UNSET,
        scope: ScopeSpec = _UNSET,
        factory: Callable[[], Any] = _UNSET,
        with_params: Iterable[Any] = _UNSET,
    ) -> BindingConfig[Any] | ValueConfig:
        """Configure the binding for ``key`` in one call.

        For class keys ``to`` is the implementation class; for names it is the
        literal value. ``to`` and ``factory`` are mutually exclusive.

        Args:
            key: Class or value name.
            to: Implementation class, or literal value for names.
            scope: Scope for the binding.
            factory: Zero-argument producer replacing construction.
            with_params: Constructor parameter keys, classes only.

        Returns:
            The fluent config of the binding.

        Raises:
            IocWireInvalidBindingDeclarationError: If ``to`` and ``factory``
                are both given, or ``with_params`` is given for a name.

        """
        if to is not _UNSET and factory is not _UNSET:
            msg = f"Provide either 'to' or 'factory' for {key!r}, not both."
            raise IocWireInvalidBindingDeclarationError(msg)
        if isinstance(key, str):
            if with_params is not _UNSET:
                msg = f"Named binding {key!r} has no constructor to declare parameters for."
                raise IocWireInvalidBindingDeclarationError(msg)
            config: BindingConfig[Any] | ValueConfig = self.bind_name(key)
        else:
            config = self.bind(key)
        if to is not _UNSET:
            config.to(to)
        if factory is not _UNSET:
            config.factory(factory)
        if scope is not _UNSET:
            config.scope(scope)
        if with_params is not _UNSET and isinstance(config, BindingConfig):
            config.with_params(*with_params)
        return config

    def instrument_constructor(self, key: type[T]) -> type[T]:
        """Block direct construction of ``key`` outside the container.

        Returns:
            The instrumented class to use in place of the original.

        """
        return self.bind(key).instrument_constructor()

    def inject_property(self, target_type: type[Any], name: str, key: Any) -> None:
        """Assign ``name`` on new ``target_type`` instances from ``key`` after construction.

        Args:
            target_type: Class whose instances receive the property. Subclasses
                inherit the registration.
            name: Attribute name.
            key: Request key resolved for the attribute.

        """
        self._registry.register_property(target_type, name, key)

    def inject_value_property(self, target_type: type[Any], name: str, value_name: str) -> None:
        """Assign ``name`` on new ``target_type`` instances from a named value."""
        if not isinstance(value_name, str):
            msg = f"Value name for {target_type.__qualname__}.{name} must be a string."
            raise IocWireInvalidBindingDeclarationError(msg)
        self._registry.register_property(target_type, name, value_name)

    def is_bound(self, key: Any) -> bool:
        """Return whether ``key`` has a binding, explicit or auto-created."""
        return key in self._registry

    def load_config(self, *entries: Mapping[str, Any], env: str | None = None) -> None:
        """Apply declarative binding entries.

        Args:
            *entries: Mappings such as ``{"bind": A, "to": B}``,
                ``{"bind_name": "n", "to": 1}`` or ``{"env": {...}}``.
            env: Environment whose ``env`` entries apply. Defaults to the
                container ``environment``.

        Raises:
            IocWireInvalidBindingDeclarationError: If an entry is malformed.

        """
        ConfigurationLoader(self).load(
            entries,
            env=env if env is not None else self._environment,
        )

    def snapshot(self, *keys: Any) -> Snapshot:
        """Save bindings so they can be restored later.

        Args:
            *keys: Keys to save. Without keys the whole registry is saved.

        Returns:
            A snapshot usable directly or as a context manager.

        """
        return self._registry.snapshot(keys)

    def reset(self) -> None:
        """Drop every binding, property registration and cached instance."""
        self._registry.clear()
        logger.debug("Container %r reset", self)

    def _add_binding(self, key: Any, *, target_type: type[Any] | None, scope: ScopeSpec) -> Binding:
        manager = build_scope_manager(scope, lock_mode=self._lock_mode)
        binding = self._registry.add(Binding(key=key, target_type=target_type, scope=manager))
        logger.debug("Bound %r", key)
        return binding

    # endregion Registration Methods

    # region Resolution Methods
    @overload
    def resolve(self, key: type[T], context: Hashable | None = None) -> T: ...

    @overload
    def resolve(self, key: Any, context: Hashable | None = None) -> Any: ...

    def resolve(self, key: Any, context: Hashable | None = None) -> Any:
        """Return an instance for ``key`` according to its binding and scope.

        Args:
            key: Class or value name. Dotted names such as
                ``"config.db.url"`` walk into a bound ``"config"`` value when
                the full name is not bound itself.
            context: Context token for ``Scope.LOCAL`` and custom scopes.
                Defaults to the token entered with ``enter_context``. Nested
                resolutions inherit the token of the top-level call.

        Raises:
            IocWireUnresolvableBindingError: If the key cannot be produced.
            IocWireCircularDependencyError: If the key depends on itself.
            IocWireInstantiationBlockedError: If a constructor refuses to run.

        """
        with resolution_context(context) as resolution:
            resolution.push(key)
            try:
                binding = self._registry.get(key)
                if binding is None:
                    if isinstance(key, str):
                        return self._resolve_value_path(key)
                    binding = self._autobind(key)
                return binding.scope.resolve(
                    binding,
                    functools.partial(self._instantiate, binding),
                    resolution,
                )
            finally:
                resolution.pop()

    def end_context(self, token: Hashable) -> None:
        """Evict every instance cached for ``token`` by scope managers."""
        for binding in self._registry:
            binding.scope.end_context(token)
        logger.debug("Ended context %r", token)

    @contextmanager
    def enter_context(self, token: Hashable) -> Iterator[Container]:
        """Resolve with ``token`` as the default context token inside the block.

        Instances cached for the token are evicted when the block exits.

        Examples:
            .. code-block:: python

                with container.enter_context(request.id):
                    handler = container.resolve(RequestHandler)

        """
        try:
            with current_token(token):
                yield self
        finally:
            self.end_context(token)

    def inject(self, callable_obj: F) -> F:
        """Wrap a callable so its ``Injected[...]`` parameters are resolved per call.

        Injected parameters are hidden from the wrapper signature and can
        still be passed explicitly by keyword to override resolution.

        Raises:
            IocWireInvalidBindingDeclarationError: If an injected parameter is
                positional-only.

        Examples:
            .. code-block:: python

                @container.inject
                def handle(order_id: int, service: Injected[OrderService]) -> None:
                    service.ship(order_id)

                handle(42)

        """
        inspection = self._injected_callable_inspector.inspect_callable(callable_obj)
        parameters = inspection.signature.parameters
        for parameter in inspection.injected_parameters:
            if parameters[parameter.name].kind is inspect.Parameter.POSITIONAL_ONLY:
                msg = f"Injected parameter '{parameter.name}' cannot be positional-only."
                raise IocWireInvalidBindingDeclarationError(msg)

        @functools.wraps(callable_obj)
        def _injected(*args: Any, **kwargs: Any) -> Any:
            for parameter in inspection.injected_parameters:
                if parameter.name not in kwargs:
                    kwargs[parameter.name] = self.resolve(parameter.dependency)
            return callable_obj(*args, **kwargs)

        _injected.__signature__ = inspection.public_signature  # type: ignore[attr-defined]
        return _injected  # type: ignore[return-value]

    def _autobind(self, key: Any) -> Binding:
        if not self._autobind_enabled or not self._autobinding_policy.is_eligible(key):
            reason = (
                "autobinding is disabled"
                if not self._autobind_enabled
                else self._autobinding_policy.rejection_reason(key)
            )
            msg = f"{_describe(key)} is not bound and cannot be auto-bound: {reason}."
            raise IocWireUnresolvableBindingError(key, msg)
        with self._registry.lock:
            existing = self._registry.get(key)
            if existing is not None:
                return existing
            binding = self._add_binding(
                key,
                target_type=key,
                scope=self._autobinding_policy.default_scope(key, self._default_scope),
            )
        logger.debug("Auto-bound %r to itself", key)
        return binding

    def _instantiate(self, binding: Binding) -> Any:
        if binding.factory is not None:
            return binding.factory()
        if binding.has_value:
            return binding.value
        target = binding.target_type
        if target is None:
            msg = f"Named value {binding.key!r} has no value or factory configured."
            raise IocWireUnresolvableBindingError(binding.key, msg)
        if inspect.isabstract(target):
            msg = (
                f"{target.__qualname__} is abstract. "
                f"Bind an implementation with bind({target.__qualname__}).to(...)."
            )
            raise IocWireUnresolvableBindingError(binding.key, msg)

        arguments = [self.resolve(param_key) for param_key in self._param_keys(binding, target)]
        with construction_guard(target):
            instance = target(*arguments)
        self._inject_properties(instance, target)
        return instance

    def _param_keys(self, binding: Binding, target: type[Any]) -> list[Any]:
        param_keys = binding.param_keys
        if param_keys is not None:
            return param_keys
        with self._registry.lock:
            if binding.param_keys is None:
                binding.param_keys = self._declaration_inspector.constructor_param_keys(target)
            return binding.param_keys

    def _inject_properties(self, instance: Any, target: type[Any]) -> None:
        if self._registry.mark_declared(target):
            for name, declared in self._declaration_inspector.declared_properties(target).items():
                self._registry.register_declared_property(target, name, declared.key)
        for name, key in self._registry.properties_for(target).items():
            setattr(instance, name, self.resolve(key))

    def _resolve_value_path(self, name: str) -> Any:
        parts = name.split(".")
        for index in range(len(parts) - 1, 0, -1):
            prefix = ".".join(parts[:index])
            if prefix not in self._registry:
                continue
            value = self.resolve(prefix)
            for segment in parts[index:]:
                value = _lookup_segment(value, segment, name)
            return value
        msg = f"Named value {name!r} is not bound. Use bind_name({name!r}).to(value)."
        raise IocWireUnresolvableBindingError(name, msg)

    # endregion Resolution Methods


def _lookup_segment(value: Any, segment: str, name: str) -> Any:
    if isinstance(value, Mapping):
        if segment in value:
            return value[segment]
    elif hasattr(value, segment):
        return getattr(value, segment)
    msg = f"Named value {name!r} cannot be resolved: no {segment!r} in {value!r}."
    raise IocWireUnresolvableBindingError(name, msg)


def _describe(key: Any) -> str:
    if isinstance(key, str):
        return f"Named value {key!r}"
    return getattr(key, "__qualname__", None) or repr(key)
