from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from iocwire.exceptions import IocWireInvalidBindingDeclarationError

if TYPE_CHECKING:
    from iocwire.container import Container

_CLASS_ENTRY_KEYS = frozenset({"bind", "to", "factory", "scope", "with_params"})
_NAME_ENTRY_KEYS = frozenset({"bind_name", "to", "factory", "scope"})


class ConfigurationLoader:
    """Apply declarative binding entries to a container.

    Entries are plain mappings, so they can come from Python modules or any
    loader that produces dictionaries:

    - ``{"bind": Repository, "to": SqlRepository, "scope": Scope.SINGLETON}``
    - ``{"bind_name": "config", "to": {"db": {"url": "sqlite://"}}}``
    - ``{"env": {"test": [...], "production": [...]}}`` applies the entries
      listed for the active environment only.
    """

    def __init__(self, container: Container) -> None:
        self._container = container

    def load(self, entries: Iterable[Mapping[str, Any]], *, env: str | None) -> None:
        for entry in entries:
            if not isinstance(entry, Mapping):
                msg = f"Configuration entries must be mappings, got {entry!r}."
                raise IocWireInvalidBindingDeclarationError(msg)
            if "env" in entry:
                self._load_environment(entry, env=env)
            elif "bind" in entry:
                self._load_class_entry(entry)
            elif "bind_name" in entry:
                self._load_name_entry(entry)
            else:
                msg = f"Configuration entry needs 'bind', 'bind_name' or 'env': {dict(entry)!r}."
                raise IocWireInvalidBindingDeclarationError(msg)

    def _load_environment(self, entry: Mapping[str, Any], *, env: str | None) -> None:
        _reject_unknown_keys(entry, frozenset({"env"}))
        environments = entry["env"]
        if not isinstance(environments, Mapping):
            msg = f"'env' must map environment names to entry lists, got {environments!r}."
            raise IocWireInvalidBindingDeclarationError(msg)
        if env is None or env not in environments:
            return
        self.load(environments[env], env=env)

    def _load_class_entry(self, entry: Mapping[str, Any]) -> None:
        _reject_unknown_keys(entry, _CLASS_ENTRY_KEYS)
        options = {name: entry[name] for name in ("to", "factory", "scope") if name in entry}
        if "with_params" in entry:
            options["with_params"] = tuple(entry["with_params"])
        self._container.configure(entry["bind"], **options)

    def _load_name_entry(self, entry: Mapping[str, Any]) -> None:
        _reject_unknown_keys(entry, _NAME_ENTRY_KEYS)
        options = {name: entry[name] for name in ("to", "factory", "scope") if name in entry}
        self._container.configure(entry["bind_name"], **options)


def _reject_unknown_keys(entry: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(entry) - allowed)
    if unknown:
        msg = f"Unknown configuration keys {unknown} in entry {dict(entry)!r}."
        raise IocWireInvalidBindingDeclarationError(msg)
