from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, get_type_hints

from iocwire.exceptions import IocWireInvalidBindingDeclarationError
from iocwire.markers import (
    InjectedProperty,
    dependency_key_from_annotation,
    is_injection_annotation,
)

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass(frozen=True, slots=True)
class InjectedParameter:
    """Injected parameter metadata for callable wrapper generation."""

    name: str
    dependency: Any


@dataclass(frozen=True, slots=True)
class InjectedCallableInspection:
    """Injection metadata derived from a callable signature and annotations."""

    signature: inspect.Signature
    injected_parameters: tuple[InjectedParameter, ...]
    public_signature: inspect.Signature


@dataclass(slots=True)
class InjectedCallableInspector:
    """Inspect callables for ``Injected[...]`` parameters and public signature filtering."""

    def inspect_callable(self, callable_obj: Callable[..., Any]) -> InjectedCallableInspection:
        """Build injection metadata and a public signature for a callable."""
        signature = inspect.signature(callable_obj)
        annotations = resolved_annotations(callable_obj)
        injected: list[InjectedParameter] = []
        for parameter in signature.parameters.values():
            annotation = annotations.get(parameter.name, parameter.annotation)
            if not is_injection_annotation(annotation):
                continue
            injected.append(
                InjectedParameter(
                    name=parameter.name,
                    dependency=dependency_key_from_annotation(annotation),
                ),
            )
        injected_parameters = tuple(injected)
        hidden = {parameter.name for parameter in injected_parameters}
        public_signature = signature.replace(
            parameters=[
                parameter
                for parameter in signature.parameters.values()
                if parameter.name not in hidden
            ],
        )
        return InjectedCallableInspection(
            signature=signature,
            injected_parameters=injected_parameters,
            public_signature=public_signature,
        )


class DeclarationInspector:
    """Read injection declarations from a class.

    This is the collaborator that turns constructor annotations and
    ``inject()``/``inject_value()`` attributes into explicit registry calls.
    """

    def constructor_param_keys(self, target: type[Any]) -> list[Any]:
        """Return the request keys for the positional constructor parameters of ``target``.

        Parameters marked with ``Injected[...]`` or ``InjectedValue[...]`` and
        required annotated parameters are injected in declaration order. The
        first unmarked parameter with a default ends the list so Python fills
        it and the rest from their defaults.

        Args:
            target: Class whose ``__init__`` is inspected.

        Raises:
            IocWireInvalidBindingDeclarationError: If a required parameter has
                no annotation, is keyword-only, or an injected parameter follows
                one left to its default.

        """
        init = inspect.unwrap(target.__init__)
        if init is object.__init__:
            return []
        try:
            signature = inspect.signature(init)
        except (TypeError, ValueError):
            return []
        annotations, hint_error = _type_hints(init)

        keys: list[Any] = []
        defaulted: str | None = None
        for parameter in list(signature.parameters.values())[1:]:
            if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            annotation = annotations.get(parameter.name, parameter.annotation)
            has_default = parameter.default is not inspect.Parameter.empty
            if parameter.kind not in _POSITIONAL_KINDS:
                if has_default:
                    continue
                msg = (
                    f"{target.__qualname__}.__init__ parameter '{parameter.name}' is keyword-only "
                    "and has no default; the container passes constructor arguments by position."
                )
                raise IocWireInvalidBindingDeclarationError(msg)
            if has_default and not is_injection_annotation(annotation):
                defaulted = defaulted or parameter.name
                continue
            if defaulted is not None:
                msg = (
                    f"{target.__qualname__}.__init__ parameter '{parameter.name}' is injected "
                    f"but follows '{defaulted}', which is left to its default."
                )
                raise IocWireInvalidBindingDeclarationError(msg)
            if hint_error is not None:
                msg = (
                    f"Cannot evaluate constructor annotations of {target.__qualname__}: "
                    f"{hint_error}"
                )
                raise IocWireInvalidBindingDeclarationError(msg) from hint_error
            if annotation is inspect.Parameter.empty:
                msg = (
                    f"{target.__qualname__}.__init__ parameter '{parameter.name}' has no type "
                    "annotation. Annotate it or declare the keys with with_params(...)."
                )
                raise IocWireInvalidBindingDeclarationError(msg)
            keys.append(dependency_key_from_annotation(annotation))
        return keys

    def declared_properties(self, target: type[Any]) -> dict[str, InjectedProperty]:
        """Return ``inject()``/``inject_value()`` attributes of ``target`` and its bases."""
        properties: dict[str, InjectedProperty] = {}
        for klass in reversed(target.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, InjectedProperty):
                    properties[name] = value
                elif name in properties:
                    # overridden by a plain attribute in a subclass
                    del properties[name]
        return properties


def positional_parameter_bounds(target: type[Any]) -> tuple[int, int] | None:
    """Return ``(required, total)`` positional parameter counts of ``target.__init__``.

    ``total`` is ``-1`` when the constructor accepts ``*args``. ``None`` is
    returned when the signature cannot be inspected.
    """
    init = inspect.unwrap(target.__init__)
    if init is object.__init__:
        return 0, 0
    try:
        parameters = list(inspect.signature(init).parameters.values())[1:]
    except (TypeError, ValueError):
        return None
    positional = [parameter for parameter in parameters if parameter.kind in _POSITIONAL_KINDS]
    required = sum(1 for parameter in positional if parameter.default is inspect.Parameter.empty)
    if any(parameter.kind is inspect.Parameter.VAR_POSITIONAL for parameter in parameters):
        return required, -1
    return required, len(positional)


def resolved_annotations(callable_obj: Callable[..., Any]) -> dict[str, Any]:
    """Resolve callable annotations with extras, or return an empty mapping on failure."""
    annotations, _ = _type_hints(callable_obj)
    return annotations


def _type_hints(
    callable_obj: Callable[..., Any],
) -> tuple[dict[str, Any], Exception | None]:
    try:
        return get_type_hints(callable_obj, include_extras=True), None
    except (AttributeError, NameError, TypeError) as error:
        return {}, error
