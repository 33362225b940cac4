from __future__ import annotations

from typing import Any


class IocWireError(Exception):
    """Represent a base class for all iocwire-specific failures.

    Catch this type when you want to handle any iocwire error path without
    matching each concrete exception class individually.
    """


class IocWireInvalidBindingDeclarationError(IocWireError, TypeError):
    """Signal an injection construct used on an unsupported target.

    Raised at declaration time, for example when ``inject()`` or
    ``inject_value()`` decorate a class instead of being assigned to a class
    attribute, when a constructor parameter has neither an annotation nor a
    default, or when ``to`` and ``factory`` are passed together.

    Typical fixes include moving the marker to a property or constructor
    parameter and declaring one production rule per binding.
    """


class IocWireUnresolvableBindingError(IocWireError):
    """Signal that a request key has no way to produce a value.

    Raised by ``resolve`` for named keys without a configured value or
    factory, for named keys that were never bound, and for class keys that
    cannot be auto-bound (abstract classes, builtins, or any key while
    autobinding is disabled).

    Typical fixes include ``container.bind_name("name").to(value)`` or an
    explicit ``container.bind(Interface).to(Implementation)``.
    """

    def __init__(self, key: Any, message: str) -> None:
        super().__init__(message)
        self.key = key


class IocWireCircularDependencyError(IocWireError):
    """Signal a cycle in the dependency graph.

    Raised by ``resolve`` when a key is requested while it is already being
    resolved on the same call chain. ``cycle`` holds the keys from the first
    occurrence of the repeated key up to and including the repetition.

    Typical fixes include breaking the cycle with a factory, a property
    injection resolved lazily, or an extracted shared dependency.
    """

    def __init__(self, cycle: list[Any]) -> None:
        self.cycle = cycle
        path = " -> ".join(_key_name(key) for key in cycle)
        super().__init__(f"Circular dependency detected: {path}")


class IocWireInstantiationBlockedError(IocWireError, TypeError):
    """Signal direct construction of a container-only class.

    Raised by the constructor of a class decorated with
    ``only_instantiable_by_container`` (or bound with
    ``instrument_constructor()``) when it is called outside the container.

    Typical fix is asking the container for the instance with
    ``container.resolve(MyClass)``.
    """


class IocWireInvalidScopeConfigurationError(IocWireError):
    """Signal a malformed scope passed to a binding.

    Raised by ``scope(...)``/``configure(scope=...)`` when the value is not a
    ``Scope`` member or a ``ScopeManager`` subclass/instance with a concrete
    ``resolve`` method.
    """


def _key_name(key: Any) -> str:
    if isinstance(key, str):
        return repr(key)
    return getattr(key, "__qualname__", None) or repr(key)
