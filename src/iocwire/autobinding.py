from __future__ import annotations

import datetime
import decimal
import inspect
import pathlib
import uuid
from dataclasses import dataclass
from typing import Any, TypeGuard

from iocwire.integrations.pydantic_settings import is_settings_class
from iocwire.scope import Scope
from iocwire.type_checks import is_runtime_class


@dataclass(frozen=True, slots=True)
class AutobindingPolicy:
    """Decide which unseen keys may be bound to themselves on first request."""

    ignored_base_types: tuple[type[Any], ...] = (
        pathlib.PurePath,
        datetime.datetime,
        datetime.date,
        datetime.time,
        datetime.timedelta,
        uuid.UUID,
        decimal.Decimal,
    )

    def is_eligible(self, candidate: object) -> TypeGuard[type[Any]]:
        """Return true when a candidate can be auto-bound to itself.

        Args:
            candidate: Request key being checked.

        """
        if not is_runtime_class(candidate):
            return False
        if candidate.__module__ == "builtins":
            return False
        if inspect.isabstract(candidate):
            return False
        if issubclass(candidate, type):
            return False
        return not issubclass(candidate, self.ignored_base_types)

    def rejection_reason(self, candidate: object) -> str:
        """Explain why ``candidate`` is not eligible, for error messages."""
        if isinstance(candidate, str):
            return "named keys must be bound with bind_name(...) before they are resolved"
        if not is_runtime_class(candidate):
            return "only classes can be bound to themselves"
        if inspect.isabstract(candidate):
            return "abstract classes need bind(...).to(Implementation)"
        return "builtin and value types need an explicit binding"

    def default_scope(self, target: type[Any], fallback: Scope) -> Scope:
        """Return the scope an auto-bound class starts with."""
        if is_settings_class(target):
            return Scope.SINGLETON
        return fallback
