from __future__ import annotations

import inspect
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable
from enum import Enum
from typing import TYPE_CHECKING, Any

from iocwire.exceptions import IocWireInvalidScopeConfigurationError
from iocwire.lock_mode import LockMode

if TYPE_CHECKING:
    from iocwire.bindings import Binding
    from iocwire.resolution import ResolutionContext

logger = logging.getLogger(__name__)

Instantiate = Callable[[], Any]
"""Zero-argument callable that builds a fresh instance for one binding."""

_MISSING: Any = object()


class ScopeManager(ABC):
    """Decide whether a binding produces a fresh instance or reuses a cached one.

    Each binding owns exactly one scope manager, so any state kept on the
    manager is per binding. Subclass it to implement a custom cache
    granularity; ``resolve`` is the only mandatory method.

    Examples:
        .. code-block:: python

            class PerThreadScope(ScopeManager):
                def __init__(self) -> None:
                    self._local = threading.local()

                def resolve(self, binding, instantiate, context):
                    if not hasattr(self._local, "instance"):
                        self._local.instance = instantiate()
                    return self._local.instance

    """

    @abstractmethod
    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        """Return an instance for ``binding``, calling ``instantiate`` on a cache miss.

        Args:
            binding: Binding being resolved.
            instantiate: Builds a new instance through the resolver.
            context: Resolution context of the current top-level call. Its
                ``token`` holds the caller supplied context token, if any.

        """

    def reset(self) -> None:
        """Drop every cached instance."""

    def renewed(self) -> ScopeManager:
        """Return the manager a binding keeps after its target or factory changes.

        The default drops cached instances in place and keeps using ``self``.
        Built-in managers return a new empty manager instead, so snapshots
        holding the previous manager keep their cached instances.
        """
        self.reset()
        return self

    def end_context(self, token: Hashable) -> None:
        """Drop instances cached for ``token``.

        Args:
            token: Context token whose lifetime ended.

        """


class TransientScope(ScopeManager):
    """Create a new instance on every request."""

    def renewed(self) -> ScopeManager:
        return self

    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        return instantiate()


class SingletonScope(ScopeManager):
    """Create the instance once and share it for the container lifetime."""

    def __init__(self, *, lock_mode: LockMode = LockMode.THREAD) -> None:
        self._lock_mode = lock_mode
        self._instance: Any = _MISSING
        self._lock: threading.Lock | None = (
            threading.Lock() if lock_mode is LockMode.THREAD else None
        )

    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        instance = self._instance
        if instance is not _MISSING:
            return instance
        if self._lock is None:
            return self._create(binding, instantiate)
        with self._lock:
            # another thread may have finished creation while we waited
            if self._instance is not _MISSING:
                return self._instance
            return self._create(binding, instantiate)

    def _create(self, binding: Binding, instantiate: Instantiate) -> Any:
        instance = instantiate()
        self._instance = instance
        logger.debug("Created singleton for %r", binding.key)
        return instance

    def reset(self) -> None:
        self._instance = _MISSING

    def renewed(self) -> ScopeManager:
        return SingletonScope(lock_mode=self._lock_mode)


class LocalScope(ScopeManager):
    """Cache one instance per context token.

    Without a context token there is nothing to cache under, so every request
    creates a new instance. Entries stay until ``end_context`` is called for
    their token.
    """

    def __init__(self) -> None:
        self._instances: dict[Hashable, Any] = {}

    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        token = context.token
        if token is None:
            return instantiate()
        instance = self._instances.get(token, _MISSING)
        if instance is not _MISSING:
            return instance
        # concurrent creators converge on whichever instance was stored first
        return self._instances.setdefault(token, instantiate())

    def reset(self) -> None:
        self._instances.clear()

    def renewed(self) -> ScopeManager:
        return LocalScope()

    def end_context(self, token: Hashable) -> None:
        self._instances.pop(token, None)


class RequestScope(ScopeManager):
    """Share one instance within a single top-level ``resolve`` call."""

    def renewed(self) -> ScopeManager:
        return self

    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        instance = context.request_instances.get(binding.key, _MISSING)
        if instance is not _MISSING:
            return instance
        instance = instantiate()
        context.request_instances[binding.key] = instance
        return instance


class Scope(str, Enum):
    """Built-in instance lifetimes."""

    TRANSIENT = "transient"
    """A new instance is created every time the key is requested."""

    SINGLETON = "singleton"
    """A single instance is created lazily and shared for the container lifetime."""

    LOCAL = "local"
    """Instance is shared per context token and evicted by ``end_context``."""

    REQUEST = "request"
    """Instance is shared inside one top-level resolution graph."""

    def create_manager(self, *, lock_mode: LockMode = LockMode.THREAD) -> ScopeManager:
        """Build a fresh scope manager for one binding.

        Args:
            lock_mode: Locking strategy applied to singleton creation.

        """
        if self is Scope.SINGLETON:
            return SingletonScope(lock_mode=lock_mode)
        if self is Scope.LOCAL:
            return LocalScope()
        if self is Scope.REQUEST:
            return RequestScope()
        return TransientScope()


ScopeSpec = Scope | type[ScopeManager] | ScopeManager
"""Anything accepted as a binding scope."""


def build_scope_manager(scope: Any, *, lock_mode: LockMode = LockMode.THREAD) -> ScopeManager:
    """Turn a scope argument into the manager owned by one binding.

    Args:
        scope: ``Scope`` member, ``ScopeManager`` subclass or instance. Duck
            typed objects with a concrete ``resolve`` method are accepted too.
        lock_mode: Locking strategy forwarded to ``Scope.SINGLETON``.

    Returns:
        The scope manager to store on the binding.

    Raises:
        IocWireInvalidScopeConfigurationError: If ``scope`` cannot resolve
            instances.

    """
    if isinstance(scope, Scope):
        return scope.create_manager(lock_mode=lock_mode)
    if inspect.isclass(scope):
        _validate_resolve_method(scope, scope)
        try:
            manager = scope()
        except TypeError as error:
            msg = f"Scope class {scope.__qualname__} must be constructible without arguments."
            raise IocWireInvalidScopeConfigurationError(msg) from error
        return _as_scope_manager(manager)
    _validate_resolve_method(type(scope), scope)
    return _as_scope_manager(scope)


def _as_scope_manager(scope: Any) -> ScopeManager:
    if isinstance(scope, ScopeManager):
        return scope
    return _DuckTypedScope(scope)


class _DuckTypedScope(ScopeManager):
    """Adapt an object that only provides ``resolve`` to the manager interface."""

    def __init__(self, scope: Any) -> None:
        self.scope = scope

    def resolve(
        self,
        binding: Binding,
        instantiate: Instantiate,
        context: ResolutionContext,
    ) -> Any:
        return self.scope.resolve(binding, instantiate, context)

    def reset(self) -> None:
        reset = getattr(self.scope, "reset", None)
        if callable(reset):
            reset()

    def end_context(self, token: Hashable) -> None:
        end_context = getattr(self.scope, "end_context", None)
        if callable(end_context):
            end_context(token)


def _validate_resolve_method(scope_type: type[Any], scope: Any) -> None:
    resolve = getattr(scope, "resolve", None)
    if resolve is None or not callable(resolve):
        msg = f"Scope {scope!r} does not implement 'resolve(binding, instantiate, context)'."
        raise IocWireInvalidScopeConfigurationError(msg)
    if "resolve" in getattr(scope_type, "__abstractmethods__", ()):
        msg = f"Scope {scope_type.__qualname__} leaves 'resolve' abstract."
        raise IocWireInvalidScopeConfigurationError(msg)
