from __future__ import annotations

import functools
import importlib
import warnings
from typing import Any

from iocwire.type_checks import is_runtime_class

# pydantic.v1 warns on import under Python 3.14+, autobinding must stay silent
_PYDANTIC_V1_WARNING = r"Core Pydantic V1 functionality isn't compatible with Python 3\.14"

_SETTINGS_MODULES = ("pydantic_settings", "pydantic.v1")


@functools.cache
def settings_bases() -> tuple[type[Any], ...]:
    """Return the ``BaseSettings`` classes importable in this environment.

    Modules are imported on the first call only, so a container that never
    auto-binds does not pay for importing pydantic.
    """
    bases: list[type[Any]] = []
    for module_name in _SETTINGS_MODULES:
        base = _import_settings_base(module_name)
        if base is not None and base not in bases:
            bases.append(base)
    return tuple(bases)


def _import_settings_base(module_name: str) -> type[Any] | None:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message=_PYDANTIC_V1_WARNING, category=UserWarning)
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return None
    base = getattr(module, "BaseSettings", None)
    return base if is_runtime_class(base) else None


def is_settings_class(candidate: object) -> bool:
    """Return whether ``candidate`` is a user-defined Pydantic settings class.

    Such classes load the environment once, so autobinding gives them
    ``Scope.SINGLETON`` and every consumer shares the loaded values. The
    ``BaseSettings`` classes themselves do not count.

    Args:
        candidate: Request key being auto-bound.

    Returns:
        ``False`` for every candidate when neither ``pydantic_settings`` nor
        ``pydantic.v1`` can be imported.

    """
    if not is_runtime_class(candidate):
        return False
    bases = settings_bases()
    if candidate in bases:
        return False
    return any(issubclass(candidate, base) for base in bases)


__all__ = ["is_settings_class", "settings_bases"]
