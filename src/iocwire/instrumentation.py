from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, TypeVar

from iocwire.exceptions import IocWireInstantiationBlockedError

C = TypeVar("C", bound=type[Any])

INSTRUMENTED_MARKER = "__iocwire_instrumented__"


@dataclass(slots=True)
class _Construction:
    target: type[Any]
    instance: object | None = None


# Construction the container is performing right now in this thread or task.
_construction: ContextVar[_Construction | None] = ContextVar(
    "iocwire_construction",
    default=None,
)


@contextmanager
def construction_guard(target: type[Any]) -> Iterator[None]:
    """Allow the next ``target`` instance to pass instrumented constructors."""
    reset_token = _construction.set(_Construction(target=target))
    try:
        yield
    finally:
        _construction.reset(reset_token)


def is_instrumented(cls: type[Any]) -> bool:
    return INSTRUMENTED_MARKER in vars(cls)


def instrument_class(cls: C) -> C:
    """Wrap the constructor of ``cls`` so only the container can create instances.

    The class object itself is kept, so ``isinstance`` and subclassing keep
    working. Subclasses inherit the restriction through ``super().__init__``.
    Instrumenting the same class twice is a no-op.

    Args:
        cls: Class to restrict.

    Returns:
        ``cls`` with its ``__init__`` replaced by the guarded wrapper.

    """
    if is_instrumented(cls):
        return cls

    original_init: Callable[..., None] = cls.__init__

    @functools.wraps(original_init)
    def __init__(self: Any, *args: Any, **kwargs: Any) -> None:  # noqa: N807
        if not _is_sanctioned(self):
            msg = (
                f"Can not instantiate {cls.__qualname__}: instantiation is blocked for this "
                f"class. Ask the container for it with container.resolve({cls.__qualname__})."
            )
            raise IocWireInstantiationBlockedError(msg)
        original_init(self, *args, **kwargs)

    cls.__init__ = __init__  # type: ignore[misc]
    setattr(cls, INSTRUMENTED_MARKER, True)
    return cls


def _is_sanctioned(instance: object) -> bool:
    construction = _construction.get()
    if construction is None:
        return False
    if construction.instance is None:
        # first instrumented constructor reached for the object the container asked for
        if not isinstance(instance, construction.target):
            return False
        construction.instance = instance
        return True
    return construction.instance is instance
