from __future__ import annotations

import logging
import threading
from typing import Any

from iocwire.container import Container

logger = logging.getLogger(__name__)


class ContainerContext:
    """Process-wide holder of the container used by declaration decorators.

    Class decorators such as ``injectable`` and lazily resolved ``inject()``
    properties reach the container through this object. The active container
    is shared by every thread; it is not task-local or thread-local.
    """

    def __init__(self) -> None:
        self._container: Container | None = None
        self._lock = threading.Lock()

    def init(self, container: Container | None = None, **container_kwargs: Any) -> Container:
        """Install the active container and return it.

        Args:
            container: Container to install. A new one is created from
                ``container_kwargs`` when omitted.
            **container_kwargs: Arguments for ``Container`` when no container
                is given.

        Examples:
            .. code-block:: python

                container = container_context.init(environment="production")
                container.load_config(*bindings)

        """
        if container is None:
            container = Container(**container_kwargs)
        with self._lock:
            self._container = container
        logger.debug("Installed container %r", container)
        return container

    def set_current(self, container: Container) -> None:
        """Install ``container`` as the active container."""
        self.init(container)

    def get_current(self) -> Container:
        """Return the active container, creating a default one on first use."""
        container = self._container
        if container is not None:
            return container
        with self._lock:
            if self._container is None:
                self._container = Container()
                logger.debug("Created default container %r", self._container)
            return self._container

    def reset(self) -> None:
        """Forget the active container. The next ``get_current`` creates a new one."""
        with self._lock:
            self._container = None


container_context = ContainerContext()
