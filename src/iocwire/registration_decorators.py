from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from iocwire.bindings import BindingConfig
from iocwire.container_context import container_context
from iocwire.exceptions import IocWireInvalidBindingDeclarationError
from iocwire.injection import DeclarationInspector
from iocwire.scope import Scope, ScopeSpec

C = TypeVar("C", bound=type[Any])

_DECLARATION_INSPECTOR = DeclarationInspector()


def injectable(cls: C) -> C:
    """Bind a class to itself in the current container and read its constructor.

    Constructor parameter keys are read from the ``__init__`` annotations once,
    when the class is declared, so declaration errors surface immediately.

    Args:
        cls: Class to declare.

    Returns:
        ``cls`` unchanged.

    Raises:
        IocWireInvalidBindingDeclarationError: If ``cls`` is not a class or
            its constructor cannot be wired.

    Examples:
        .. code-block:: python

            @injectable
            class OrderService:
                def __init__(self, repository: Injected[OrderRepository]) -> None:
                    self.repository = repository

    """
    _declare(cls, declaration="injectable")
    return cls


def singleton(cls: C) -> C:
    """Declare a class like ``injectable`` with ``Scope.SINGLETON``."""
    _declare(cls, declaration="singleton").scope(Scope.SINGLETON)
    return cls


def scoped(scope: ScopeSpec) -> Callable[[C], C]:
    """Return a decorator declaring a class with ``scope``.

    Args:
        scope: ``Scope`` member, ``ScopeManager`` subclass or instance.

    Examples:
        .. code-block:: python

            @scoped(Scope.LOCAL)
            class RequestCache: ...

    """

    def decorator(cls: C) -> C:
        _declare(cls, declaration="scoped").scope(scope)
        return cls

    return decorator


def factory(fn: Callable[[], Any]) -> Callable[[C], C]:
    """Return a decorator producing instances of the class with ``fn``.

    Args:
        fn: Zero-argument producer. It owns the wiring of its dependencies.

    Raises:
        IocWireInvalidBindingDeclarationError: If ``fn`` is not callable,
            which is what happens when ``@factory`` decorates a class directly.

    """
    if inspect.isclass(fn) or not callable(fn):
        msg = "Invalid @factory decorator declaration. Use @factory(producer) on a class."
        raise IocWireInvalidBindingDeclarationError(msg)

    def decorator(cls: C) -> C:
        _require_class(cls, declaration="factory")
        container_context.get_current().bind(cls).factory(fn)
        return cls

    return decorator


def only_instantiable_by_container(cls: C) -> C:
    """Declare a class and block its construction outside the container.

    Returns:
        The instrumented class. Calling it directly raises
        ``IocWireInstantiationBlockedError``.

    """
    return _declare(cls, declaration="only_instantiable_by_container").instrument_constructor()


def _declare(cls: Any, *, declaration: str) -> BindingConfig[Any]:
    _require_class(cls, declaration=declaration)
    config = container_context.get_current().bind(cls)
    binding = config.binding
    if binding.factory is None and binding.param_keys is None:
        config.with_params(*_DECLARATION_INSPECTOR.constructor_param_keys(cls))
    return config


def _require_class(cls: Any, *, declaration: str) -> None:
    if not inspect.isclass(cls):
        msg = f"Invalid @{declaration} decorator declaration. It can only decorate classes."
        raise IocWireInvalidBindingDeclarationError(msg)
