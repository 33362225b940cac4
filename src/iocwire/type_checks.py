from __future__ import annotations

import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a plain class and not a parametrized alias like ``list[int]``.

    Args:
        candidate: Request key or annotation being checked.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


__all__ = ["is_runtime_class"]
