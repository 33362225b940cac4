from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from iocwire.exceptions import IocWireCircularDependencyError

# Active resolution for the current thread or task. Nested ``resolve`` calls
# made from factories or constructors join it instead of starting a new one.
_active_resolution: ContextVar[ResolutionContext | None] = ContextVar(
    "iocwire_active_resolution",
    default=None,
)

# Context token entered with ``Container.enter_context``.
_current_token: ContextVar[Hashable | None] = ContextVar(
    "iocwire_current_token",
    default=None,
)


@dataclass(slots=True)
class ResolutionContext:
    """State of one top-level ``resolve`` call.

    Holds the resolution stack used for cycle detection, the context token
    handed to scope managers and the instances shared by ``Scope.REQUEST``.
    """

    token: Hashable | None = None
    stack: list[Any] = field(default_factory=list)
    request_instances: dict[Any, Any] = field(default_factory=dict)

    def push(self, key: Any) -> None:
        """Push ``key`` onto the stack, failing if it is already being resolved."""
        for index, resolving in enumerate(self.stack):
            if resolving == key:
                raise IocWireCircularDependencyError([*self.stack[index:], key])
        self.stack.append(key)

    def pop(self) -> None:
        self.stack.pop()


@contextmanager
def resolution_context(token: Hashable | None) -> Iterator[ResolutionContext]:
    """Enter the resolution context for a ``resolve`` call.

    A top-level call creates a fresh context that is discarded on exit. A
    nested call reuses the active one, so the stack and the token are
    inherited by the whole call chain.

    Args:
        token: Explicit context token of the call, or ``None`` to use the
            token entered with ``Container.enter_context``.

    """
    active = _active_resolution.get()
    if active is not None:
        yield active
        return

    context = ResolutionContext(token=token if token is not None else _current_token.get())
    reset_token = _active_resolution.set(context)
    try:
        yield context
    finally:
        _active_resolution.reset(reset_token)


@contextmanager
def current_token(token: Hashable) -> Iterator[None]:
    """Make ``token`` the default context token for resolutions in this block."""
    reset_token = _current_token.set(token)
    try:
        yield
    finally:
        _current_token.reset(reset_token)


def get_resolution_stack() -> list[Any]:
    """Return a copy of the keys currently being resolved in this context."""
    active = _active_resolution.get()
    if active is None:
        return []
    return list(active.stack)
