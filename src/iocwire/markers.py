from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    NamedTuple,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from iocwire.exceptions import IocWireInvalidBindingDeclarationError

T = TypeVar("T")
_ANNOTATED_MARKER_MIN_ARGS = 2
_INFER: Any = object()


class InjectedMarker:
    """A marker used to indicate a parameter should be injected from the container.

    Used to identify parameters that need to be resolved by type and removed
    from callable signatures.
    """


class InjectedValueMarker(NamedTuple):
    """Marker that resolves a parameter from a named value binding."""

    name: str


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a parameter for container-driven injection.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``.
    """

    class InjectedValue:
        def __class_getitem__(cls, item: str) -> Any: ...

else:

    class Injected:
        """Mark a parameter for container-driven injection.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.

        Examples:
            .. code-block:: python

                class UserService:
                    def __init__(self, repository: Injected[UserRepository]) -> None:
                        self.repository = repository

        """

        def __new__(cls, *_args: object, **_kwargs: object) -> Any:
            msg = (
                "Invalid @Injected decorator declaration. "
                "Use Injected[T] as a parameter annotation."
            )
            raise IocWireInvalidBindingDeclarationError(msg)

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                return _build_annotated((args[0], *args[1:], InjectedMarker()))
            return _build_annotated((item, InjectedMarker()))

    class InjectedValue:
        """Mark a parameter to resolve from a named value binding.

        At runtime ``InjectedValue["name"]`` resolves to
        ``Annotated[Any, InjectedValueMarker("name")]``.

        Examples:
            .. code-block:: python

                class Mailer:
                    def __init__(self, host: InjectedValue["config.smtp.host"]) -> None:
                        self.host = host

        """

        def __new__(cls, *_args: object, **_kwargs: object) -> Any:
            msg = (
                "Invalid @InjectedValue decorator declaration. "
                'Use InjectedValue["name"] as a parameter annotation.'
            )
            raise IocWireInvalidBindingDeclarationError(msg)

        def __class_getitem__(cls, item: str) -> Any:
            if not isinstance(item, str):
                msg = f"InjectedValue expects a value name, got {item!r}."
                raise IocWireInvalidBindingDeclarationError(msg)
            return _build_annotated((Any, InjectedValueMarker(item)))


def dependency_key_from_annotation(annotation: Any) -> Any:
    """Return the request key an annotation asks for.

    ``InjectedValue["name"]`` yields ``"name"``; ``Injected[T]`` yields ``T``
    (or ``Annotated[T, ...]`` when other metadata is present); any other
    annotation is returned unchanged.
    """
    if get_origin(annotation) is not Annotated:
        return annotation
    args = get_args(annotation)
    if len(args) < _ANNOTATED_MARKER_MIN_ARGS:
        return annotation
    metadata = args[1:]
    for item in metadata:
        if isinstance(item, InjectedValueMarker):
            return item.name
    if not any(isinstance(item, InjectedMarker) for item in metadata):
        return annotation
    filtered = tuple(item for item in metadata if not isinstance(item, InjectedMarker))
    if not filtered:
        return args[0]
    return _build_annotated((args[0], *filtered))


def is_injection_annotation(annotation: Any) -> bool:
    """Return True when annotation carries ``Injected`` or ``InjectedValue`` metadata."""
    if get_origin(annotation) is not Annotated:
        return False
    return any(
        isinstance(item, InjectedMarker | InjectedValueMarker) for item in get_args(annotation)[1:]
    )


class InjectedProperty:
    """Class attribute resolved from the container after construction.

    Created by ``inject()`` and ``inject_value()``. When the container builds
    the owner class it assigns the resolved value onto the instance. When an
    instance is created any other way, the first attribute access resolves
    the value from the current container and caches it on the instance.
    """

    def __init__(self, key: Any, *, declaration: str) -> None:
        self._key = key
        self._declaration = declaration
        self.owner: type[Any] | None = None
        self.name: str | None = None

    def __set_name__(self, owner: type[Any], name: str) -> None:
        self.owner = owner
        self.name = name

    def __call__(self, target: object) -> Any:
        msg = f"Invalid @{self._declaration} decorator declaration."
        raise IocWireInvalidBindingDeclarationError(msg)

    @property
    def is_value(self) -> bool:
        return self._declaration == "inject_value"

    @property
    def key(self) -> Any:
        """Request key of the property, inferred from the owner annotation if needed."""
        if self._key is not _INFER:
            return self._key
        if self.owner is None or self.name is None:
            msg = "inject() must be assigned to a class attribute."
            raise IocWireInvalidBindingDeclarationError(msg)
        hints = get_type_hints(self.owner, include_extras=True)
        if self.name not in hints:
            msg = (
                f"Cannot infer the key of {self.owner.__qualname__}.{self.name}: "
                "annotate the attribute or pass inject(key=...)."
            )
            raise IocWireInvalidBindingDeclarationError(msg)
        self._key = dependency_key_from_annotation(hints[self.name])
        return self._key

    def __get__(self, obj: object | None, objtype: type[Any] | None = None) -> Any:
        if obj is None:
            return self
        from iocwire.container_context import container_context  # noqa: PLC0415

        value = container_context.get_current().resolve(self.key)
        obj.__dict__[self.name] = value
        return value

    def __repr__(self) -> str:
        return f"{self._declaration}({self._key if self._key is not _INFER else ''})"


def inject(target: object = None, /, *, key: Any = _INFER) -> Any:
    """Declare a property resolved by type after construction.

    Args:
        target: Must be left empty. It only catches ``@inject`` used as a
            class decorator, which is rejected at definition time.
        key: Request key to resolve. Defaults to the attribute annotation.

    Raises:
        IocWireInvalidBindingDeclarationError: If used as a decorator.

    Examples:
        .. code-block:: python

            class ReportService:
                clock: Clock = inject()

    """
    if target is not None:
        msg = "Invalid @inject decorator declaration."
        raise IocWireInvalidBindingDeclarationError(msg)
    return InjectedProperty(key, declaration="inject")


def inject_value(name: str) -> Any:
    """Declare a property resolved from a named value binding after construction.

    Args:
        name: Value name, optionally a dotted path into a bound value.

    Raises:
        IocWireInvalidBindingDeclarationError: If ``name`` is not a string,
            which is what happens when it decorates a class directly.

    """
    if not isinstance(name, str):
        msg = "Invalid @inject_value decorator declaration."
        raise IocWireInvalidBindingDeclarationError(msg)
    return InjectedProperty(name, declaration="inject_value")


def _build_annotated(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]
