"""Tests for binding registration and resolution on Container."""

from abc import ABC, abstractmethod
from datetime import date

import pytest

from iocwire.container import Container
from iocwire.exceptions import (
    IocWireInvalidBindingDeclarationError,
    IocWireUnresolvableBindingError,
)
from iocwire.scope import Scope, SingletonScope, TransientScope


class ServiceA:
    pass


class ServiceB:
    def __init__(self, a: ServiceA) -> None:
        self.a = a


class ServiceC:
    def __init__(self, a: ServiceA, b: ServiceB) -> None:
        self.a = a
        self.b = b


class Repository(ABC):
    @abstractmethod
    def find(self, key: str) -> str: ...


class MemoryRepository(Repository):
    def find(self, key: str) -> str:
        return f"memory:{key}"


class SqlRepository(Repository):
    def find(self, key: str) -> str:
        return f"sql:{key}"


class Event:
    def __init__(self, when, label) -> None:  # noqa: ANN001
        self.when = when
        self.label = label


class TestAutobinding:
    def test_unbound_class_resolves_to_instance(self, container: Container) -> None:
        """Never bound classes are bound to themselves on first request."""
        instance = container.resolve(ServiceA)

        assert isinstance(instance, ServiceA)
        assert container.is_bound(ServiceA)

    def test_transient_autobinding_returns_distinct_instances(self, container: Container) -> None:
        first = container.resolve(ServiceA)
        second = container.resolve(ServiceA)

        assert first is not second

    def test_constructor_dependencies_are_autowired(self, container: Container) -> None:
        instance = container.resolve(ServiceC)

        assert isinstance(instance.a, ServiceA)
        assert isinstance(instance.b, ServiceB)
        assert isinstance(instance.b.a, ServiceA)
        assert instance.a is not instance.b.a

    def test_autobinding_uses_container_default_scope(
        self,
        container_singleton: Container,
    ) -> None:
        assert container_singleton.resolve(ServiceA) is container_singleton.resolve(ServiceA)

    def test_abstract_class_is_not_autobound(self, container: Container) -> None:
        with pytest.raises(IocWireUnresolvableBindingError, match="abstract") as exc_info:
            container.resolve(Repository)

        assert exc_info.value.key is Repository
        assert not container.is_bound(Repository)

    def test_builtin_class_is_not_autobound(self, container: Container) -> None:
        with pytest.raises(IocWireUnresolvableBindingError, match="explicit binding"):
            container.resolve(int)

    def test_disabled_autobinding_rejects_unbound_class(
        self,
        container_no_autobind: Container,
    ) -> None:
        with pytest.raises(IocWireUnresolvableBindingError, match="autobinding is disabled"):
            container_no_autobind.resolve(ServiceA)

    def test_disabled_autobinding_resolves_explicit_bindings(
        self,
        container_no_autobind: Container,
    ) -> None:
        container_no_autobind.bind(ServiceA)

        assert isinstance(container_no_autobind.resolve(ServiceA), ServiceA)


class TestBind:
    def test_bind_creates_default_binding(self, container: Container) -> None:
        binding = container.bind(ServiceA).binding

        assert binding.key is ServiceA
        assert binding.target_type is ServiceA
        assert isinstance(binding.scope, TransientScope)
        assert binding.factory is None
        assert binding.instrumented is False

    def test_bind_is_idempotent_lookup(self, container: Container) -> None:
        first = container.bind(ServiceA).binding
        second = container.bind(ServiceA).binding

        assert first is second

    def test_config_mutates_stored_binding(self, container: Container) -> None:
        container.bind(Repository).to(MemoryRepository)

        assert container.bind(Repository).binding.target_type is MemoryRepository
        assert isinstance(container.resolve(Repository), MemoryRepository)

    def test_bind_rejects_string_keys(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="bind_name"):
            container.bind("config")  # type: ignore[arg-type]

    def test_to_rejects_abstract_targets(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="abstract"):
            container.bind(Repository).to(Repository)

    def test_to_rejects_non_classes(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="must be a class"):
            container.bind(Repository).to(MemoryRepository())  # type: ignore[arg-type]

    def test_factory_replaces_target(self, container: Container) -> None:
        repository = SqlRepository()
        config = container.bind(Repository).to(MemoryRepository).factory(lambda: repository)

        assert config.binding.target_type is None
        assert container.resolve(Repository) is repository

    def test_to_clears_factory(self, container: Container) -> None:
        container.bind(Repository).factory(SqlRepository).to(MemoryRepository)

        assert container.bind(Repository).binding.factory is None
        assert isinstance(container.resolve(Repository), MemoryRepository)

    def test_factory_must_be_callable(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="callable"):
            container.bind(ServiceA).factory(ServiceA())  # type: ignore[arg-type]

    def test_factory_is_called_without_arguments(self, container: Container) -> None:
        calls: list[tuple[object, ...]] = []

        def make_service(*args: object) -> ServiceB:
            calls.append(args)
            return ServiceB(ServiceA())

        container.bind(ServiceB).factory(make_service)
        container.resolve(ServiceB)

        assert calls == [()]

    def test_rebinding_discards_cached_singleton(self, container: Container) -> None:
        config = container.bind(Repository).to(MemoryRepository).scope(Scope.SINGLETON)
        cached = container.resolve(Repository)

        config.to(SqlRepository)

        rebound = container.resolve(Repository)
        assert isinstance(rebound, SqlRepository)
        assert rebound is not cached
        assert rebound is container.resolve(Repository)

    def test_scope_change_keeps_target(self, container: Container) -> None:
        config = container.bind(Repository).to(MemoryRepository)

        config.scope(Scope.SINGLETON)

        assert isinstance(config.binding.scope, SingletonScope)
        assert container.resolve(Repository) is container.resolve(Repository)


class TestWithParams:
    def test_parameters_are_resolved_in_declared_order(self, container: Container) -> None:
        order: list[str] = []

        def make_date() -> date:
            order.append("date")
            return date(2024, 1, 2)

        def make_label() -> str:
            order.append("str")
            return "launch"

        container.bind(date).factory(make_date)
        container.bind(str).factory(make_label)
        container.bind(Event).with_params(date, str)

        event = container.resolve(Event)

        assert order == ["date", "str"]
        assert event.when == date(2024, 1, 2)
        assert event.label == "launch"

    def test_named_parameter_keys(self, container: Container) -> None:
        container.bind_name("event.when").to(date(2020, 5, 17))
        container.bind_name("event.label").to("release")
        container.bind(Event).with_params("event.when", "event.label")

        event = container.resolve(Event)

        assert event.when == date(2020, 5, 17)
        assert event.label == "release"

    def test_explicit_keys_override_annotations(self, container: Container) -> None:
        special = ServiceA()
        container.bind_name("special").to(special)
        container.bind(ServiceB).with_params("special")

        assert container.resolve(ServiceB).a is special

    def test_too_few_keys_are_rejected(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="takes 2 positional"):
            container.bind(Event).with_params(date)

    def test_too_many_keys_are_rejected(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="got 3 parameter keys"):
            container.bind(Event).with_params(date, str, int)

    def test_unannotated_constructor_needs_explicit_keys(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="no type annotation"):
            container.resolve(Event)


class TestConfigure:
    def test_configure_sets_every_option(self, container: Container) -> None:
        container.bind(date).factory(lambda: date(2024, 1, 2))
        container.bind(str).factory(lambda: "configured")

        container.configure(Event, to=Event, scope=Scope.SINGLETON, with_params=[date, str])

        event = container.resolve(Event)
        assert event is container.resolve(Event)
        assert event.label == "configured"

    def test_configure_rejects_to_and_factory_together(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="either 'to' or 'factory'"):
            container.configure(Repository, to=MemoryRepository, factory=SqlRepository)

    def test_configure_factory_clears_to(self, container: Container) -> None:
        container.configure(Repository, to=MemoryRepository)
        container.configure(Repository, factory=SqlRepository)

        assert isinstance(container.resolve(Repository), SqlRepository)

    def test_configure_named_value(self, container: Container) -> None:
        container.configure("greeting", to="hello")

        assert container.resolve("greeting") == "hello"

    def test_configure_named_value_rejects_with_params(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="no constructor"):
            container.configure("greeting", with_params=[str])


class TestNamedBindings:
    def test_unconfigured_name_is_unresolvable(self, container: Container) -> None:
        container.bind_name("db.url")

        with pytest.raises(IocWireUnresolvableBindingError, match="no value") as exc_info:
            container.resolve("db.url")

        assert exc_info.value.key == "db.url"

    def test_unbound_name_is_unresolvable(self, container: Container) -> None:
        with pytest.raises(IocWireUnresolvableBindingError, match="is not bound"):
            container.resolve("missing")

    def test_literal_value_resolves_after_configuration(self, container: Container) -> None:
        config = container.bind_name("db.url")
        with pytest.raises(IocWireUnresolvableBindingError):
            container.resolve("db.url")

        config.to("sqlite://")

        assert container.resolve("db.url") == "sqlite://"

    def test_factory_value_resolves_after_configuration(self, container: Container) -> None:
        counter = iter(range(10))
        container.bind_name("ticket").factory(lambda: next(counter))

        assert container.resolve("ticket") == 0
        assert container.resolve("ticket") == 1

    def test_singleton_factory_value(self, container: Container) -> None:
        counter = iter(range(10))
        container.bind_name("ticket").factory(lambda: next(counter)).scope(Scope.SINGLETON)

        assert container.resolve("ticket") == 0
        assert container.resolve("ticket") == 0

    def test_value_replaces_factory(self, container: Container) -> None:
        container.bind_name("answer").factory(lambda: 41).to(42)

        assert container.resolve("answer") == 42

    def test_bind_name_rejects_classes(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="Use bind"):
            container.bind_name(ServiceA)  # type: ignore[arg-type]

    def test_dotted_name_walks_mappings(self, container: Container) -> None:
        container.bind_name("config").to({"db": {"url": "postgres://", "pool": 5}})

        assert container.resolve("config.db.url") == "postgres://"
        assert container.resolve("config.db") == {"url": "postgres://", "pool": 5}

    def test_dotted_name_walks_attributes(self, container: Container) -> None:
        class Smtp:
            host = "mail.local"

        container.bind_name("settings").to({"smtp": Smtp()})

        assert container.resolve("settings.smtp.host") == "mail.local"

    def test_exact_binding_wins_over_dotted_lookup(self, container: Container) -> None:
        container.bind_name("config").to({"db": {"url": "postgres://"}})
        container.bind_name("config.db.url").to("override://")

        assert container.resolve("config.db.url") == "override://"

    def test_missing_dotted_segment_is_unresolvable(self, container: Container) -> None:
        container.bind_name("config").to({"db": {}})

        with pytest.raises(IocWireUnresolvableBindingError, match="no 'url'"):
            container.resolve("config.db.url")


class TestPropertiesAndInspection:
    def test_inject_property_runs_after_construction(self, container: Container) -> None:
        seen: list[str] = []

        class Tracked:
            def __init__(self) -> None:
                seen.append("constructed")

        def make_a() -> ServiceA:
            seen.append("property")
            return ServiceA()

        container.bind(ServiceA).factory(make_a)
        container.inject_property(Tracked, "service", ServiceA)

        instance = container.resolve(Tracked)

        assert seen == ["constructed", "property"]
        assert isinstance(instance.service, ServiceA)

    def test_inject_value_property(self, container: Container) -> None:
        class Mailer:
            pass

        container.bind_name("smtp.host").to("mail.local")
        container.inject_value_property(Mailer, "host", "smtp.host")

        assert container.resolve(Mailer).host == "mail.local"

    def test_inject_value_property_requires_name(self, container: Container) -> None:
        with pytest.raises(IocWireInvalidBindingDeclarationError, match="must be a string"):
            container.inject_value_property(ServiceA, "host", ServiceB)  # type: ignore[arg-type]

    def test_properties_are_inherited_by_subclasses(self, container: Container) -> None:
        class Base:
            pass

        class Child(Base):
            pass

        container.inject_property(Base, "service", ServiceA)

        assert isinstance(container.resolve(Child).service, ServiceA)

    def test_properties_are_not_set_on_factory_products(self, container: Container) -> None:
        class Product:
            pass

        container.inject_property(Product, "service", ServiceA)
        container.bind(Product).factory(Product)

        assert not hasattr(container.resolve(Product), "service")

    def test_reset_drops_bindings(self, container: Container) -> None:
        container.bind(Repository).to(MemoryRepository)
        container.bind_name("greeting").to("hello")

        container.reset()

        assert not container.is_bound(Repository)
        assert not container.is_bound("greeting")
        with pytest.raises(IocWireUnresolvableBindingError):
            container.resolve(Repository)
