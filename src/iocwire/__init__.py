from iocwire.bindings import Binding, BindingConfig, Snapshot, ValueConfig
from iocwire.container import Container
from iocwire.container_context import ContainerContext, container_context
from iocwire.exceptions import (
    IocWireCircularDependencyError,
    IocWireError,
    IocWireInstantiationBlockedError,
    IocWireInvalidBindingDeclarationError,
    IocWireInvalidScopeConfigurationError,
    IocWireUnresolvableBindingError,
)
from iocwire.lock_mode import LockMode
from iocwire.markers import Injected, InjectedValue, inject, inject_value
from iocwire.registration_decorators import (
    factory,
    injectable,
    only_instantiable_by_container,
    scoped,
    singleton,
)
from iocwire.resolution import ResolutionContext
from iocwire.scope import (
    LocalScope,
    RequestScope,
    Scope,
    ScopeManager,
    SingletonScope,
    TransientScope,
)

__all__ = [
    "Binding",
    "BindingConfig",
    "Container",
    "ContainerContext",
    "Injected",
    "InjectedValue",
    "IocWireCircularDependencyError",
    "IocWireError",
    "IocWireInstantiationBlockedError",
    "IocWireInvalidBindingDeclarationError",
    "IocWireInvalidScopeConfigurationError",
    "IocWireUnresolvableBindingError",
    "LocalScope",
    "LockMode",
    "RequestScope",
    "ResolutionContext",
    "Scope",
    "ScopeManager",
    "SingletonScope",
    "Snapshot",
    "TransientScope",
    "ValueConfig",
    "container_context",
    "factory",
    "inject",
    "inject_value",
    "injectable",
    "only_instantiable_by_container",
    "scoped",
    "singleton",
]
