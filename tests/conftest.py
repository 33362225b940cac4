"""Shared pytest fixtures for iocwire tests."""

from collections.abc import Iterator

import pytest

from iocwire.container import Container
from iocwire.container_context import container_context
from iocwire.lock_mode import LockMode
from iocwire.scope import Scope


@pytest.fixture()
def container() -> Container:
    """Default container with autobinding enabled."""
    return Container()


@pytest.fixture()
def container_no_autobind() -> Container:
    """Container with autobind=False."""
    return Container(autobind=False)


@pytest.fixture()
def container_singleton() -> Container:
    """Container with singleton as the default scope."""
    return Container(default_scope=Scope.SINGLETON)


@pytest.fixture()
def container_unlocked() -> Container:
    """Container without singleton creation locks."""
    return Container(lock_mode=LockMode.NONE)


@pytest.fixture(autouse=True)
def _fresh_container_context() -> Iterator[None]:
    """Isolate the process-wide container between tests."""
    container_context.reset()
    yield
    container_context.reset()
