from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from contextlib import suppress
from typing import Any, cast

import pytest

from iocwire.container import Container
from iocwire.injection import InjectedCallableInspector, InjectedParameter

_IOCWIRE_CONTAINER_ATTR = "_iocwire_container"
_IOCWIRE_INJECTED_PARAMETERS_ATTR = "__iocwire_pytest_injected_parameters__"
_IOCWIRE_ORIGINAL_SIGNATURE_ATTR = "__iocwire_pytest_original_signature__"
_INJECTED_CALLABLE_INSPECTOR = InjectedCallableInspector()


@pytest.fixture()
def iocwire_container() -> Container:
    """Create the per-test container used by the plugin.

    ``Injected[...]`` and ``InjectedValue[...]`` test parameters are resolved
    from this container. Override the fixture in a ``conftest.py`` to bind
    fakes or to share a container across tests.

    Returns:
        A new ``Container`` instance.

    """
    return Container()


@pytest.fixture(autouse=True)
def _iocwire_state(
    request: pytest.FixtureRequest,
    iocwire_container: Container,
) -> None:
    """Store the container on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _IOCWIRE_CONTAINER_ATTR, iocwire_container)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide injected parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names, so the public
    signature of a test using ``Injected[...]`` drops those parameters.

    Returns:
        ``None`` to continue the default collection flow.

    """
    if not callable(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    inspection = _INJECTED_CALLABLE_INSPECTOR.inspect_callable(cast("Callable[..., Any]", obj))
    if not inspection.injected_parameters:
        return None

    obj_as_any = cast("Any", obj)
    obj_as_any.__dict__[_IOCWIRE_INJECTED_PARAMETERS_ATTR] = inspection.injected_parameters
    obj_as_any.__dict__[_IOCWIRE_ORIGINAL_SIGNATURE_ATTR] = inspection.signature
    obj_as_any.__signature__ = inspection.public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Run the test through ``container.inject`` when it has injected parameters.

    The test callable is swapped for the injecting wrapper during the call and
    put back afterwards. Tests without plugin state on their node are left
    untouched.
    """
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    # bound methods proxy attribute reads to the function but reject writes
    original_as_any = cast("Any", getattr(original_callable, "__func__", original_callable))
    injected_parameters = cast(
        "tuple[InjectedParameter, ...] | None",
        getattr(original_as_any, _IOCWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    if injected_parameters is None:
        injected_parameters = _INJECTED_CALLABLE_INSPECTOR.inspect_callable(
            original_callable,
        ).injected_parameters
    if not injected_parameters:
        yield
        return

    container = cast("Container | None", getattr(pyfuncitem, _IOCWIRE_CONTAINER_ATTR, None))
    if container is None:
        yield
        return

    had_signature_override = hasattr(original_as_any, "__signature__")
    signature_override = getattr(original_as_any, "__signature__", None)
    original_signature = cast(
        "inspect.Signature | None",
        getattr(original_as_any, _IOCWIRE_ORIGINAL_SIGNATURE_ATTR, None),
    )
    if original_signature is not None:
        # container.inject must see the injected parameters again
        original_as_any.__signature__ = original_signature

    try:
        pyfuncitem.obj = container.inject(original_callable)
    finally:
        if had_signature_override:
            original_as_any.__signature__ = signature_override
        else:
            with suppress(AttributeError):
                del original_as_any.__signature__

    try:
        yield
    finally:
        pyfuncitem.obj = original_callable
