"""Tests for singleton, scoped and transient resolution through providers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import NamedTuple

import pytest

from servicewire.collection import ServiceCollection
from servicewire.exceptions import ServiceWireInvalidDescriptorError, ServiceWireNotRegisteredError
from servicewire.provider import ServiceProvider

# =============================================================================
# Test Classes
# =============================================================================


class Config:
    pass


class Logger:
    def __init__(self, config: Config) -> None:
        self.config = config


class Session:
    pass


class Repository:
    def __init__(self, session: Session, logger: Logger) -> None:
        self.session = session
        self.logger = logger


class Handler:
    def __init__(self, repository: Repository) -> None:
        self.repository = repository


class Plugin:
    pass


class AuthPlugin(Plugin):
    pass


class MetricsPlugin(Plugin):
    pass


@dataclass
class Connection:
    opened: bool = False
    calls: list[str] = field(default_factory=list)

    async def on_init(self) -> None:
        await asyncio.sleep(0)
        self.opened = True
        self.calls.append("init")


class Pool:
    def __init__(self) -> None:
        self.ready = False

    def on_init(self) -> None:
        self.ready = True


@pytest.fixture()
def provider(services: ServiceCollection) -> ServiceProvider:
    services.add_singleton(Config)
    services.add_singleton(Logger, dependencies=[Config])
    services.add_scoped(Session)
    services.add_scoped(Repository, dependencies=[Session, Logger])
    services.add_transient(Handler, dependencies=[Repository])
    return services.build()


# =============================================================================
# Lifetimes
# =============================================================================


class TestSingleton:
    async def test_same_instance_from_root_and_scopes(self, provider: ServiceProvider) -> None:
        from_root = await provider.get_required_service(Logger)
        scope = provider.create_scope()
        nested = scope.create_scope()

        assert await scope.get_required_service(Logger) is from_root
        assert await nested.get_required_service(Logger) is from_root

    async def test_first_resolution_from_scope_is_cached_on_root(
        self,
        provider: ServiceProvider,
    ) -> None:
        scope = provider.create_scope()

        from_scope = await scope.get_required_service(Logger)
        await scope.dispose()

        assert await provider.get_required_service(Logger) is from_scope

    async def test_dependencies_are_injected(self, provider: ServiceProvider) -> None:
        logger = await provider.get_required_service(Logger)

        assert logger.config is await provider.get_required_service(Config)


class TestScoped:
    async def test_same_instance_within_scope(self, provider: ServiceProvider) -> None:
        scope = provider.create_scope()

        first = await scope.get_required_service(Session)
        second = await scope.get_required_service(Session)

        assert first is second

    async def test_different_instances_across_scopes(self, provider: ServiceProvider) -> None:
        first_scope = provider.create_scope()
        second_scope = provider.create_scope()

        first = await first_scope.get_required_service(Repository)
        second = await second_scope.get_required_service(Repository)

        assert first is not second
        assert first.session is not second.session
        assert first.logger is second.logger

    async def test_nested_scope_has_its_own_instances(self, provider: ServiceProvider) -> None:
        scope = provider.create_scope()
        nested = scope.create_scope()

        nested_session = await nested.get_required_service(Session)
        scope_session = await scope.get_required_service(Session)

        assert nested.parent is scope
        assert nested_session is not scope_session

    async def test_root_caches_scoped_without_validation(self, provider: ServiceProvider) -> None:
        first = await provider.get_required_service(Session)

        assert await provider.get_required_service(Session) is first


class TestTransient:
    async def test_new_instance_per_call(self, provider: ServiceProvider) -> None:
        scope = provider.create_scope()

        first = await scope.get_required_service(Handler)
        second = await scope.get_required_service(Handler)

        assert first is not second
        assert first.repository is second.repository

    async def test_transient_on_root(self, services: ServiceCollection) -> None:
        services.add_transient(Config)
        provider = services.build()

        first = await provider.get_required_service(Config)
        second = await provider.get_required_service(Config)

        assert first is not second


# =============================================================================
# Values and Factories
# =============================================================================


class TestValues:
    async def test_value_is_returned_as_is(self, services: ServiceCollection) -> None:
        config = Config()
        services.add_value(Config, config)
        provider = services.build()

        assert await provider.get_required_service(Config) is config
        assert await provider.create_scope().get_required_service(Config) is config

    async def test_value_gets_init_hook_once(self, services: ServiceCollection) -> None:
        connection = Connection()
        services.add_value("connection", connection)
        provider = services.build()

        await provider.get_required_service("connection")
        await provider.get_required_service("connection")

        assert connection.opened
        assert connection.calls == ["init"]

    async def test_none_value(self, services: ServiceCollection) -> None:
        services.add_value("optional", None)
        provider = services.build()

        assert provider.is_service("optional")
        assert await provider.get_required_service("optional") is None


class TestFactories:
    async def test_sync_factory_receives_provider(self, services: ServiceCollection) -> None:
        received: list[ServiceProvider] = []

        def make_config(provider: ServiceProvider) -> Config:
            received.append(provider)
            return Config()

        services.add_scoped_factory(Config, make_config)
        provider = services.build()
        scope = provider.create_scope()

        await scope.get_required_service(Config)

        assert received == [scope]

    async def test_async_factory_resolves_dependencies(self, services: ServiceCollection) -> None:
        async def make_logger(provider: ServiceProvider) -> Logger:
            return Logger(await provider.get_required_service(Config))

        services.add_singleton(Config)
        services.add_singleton_factory(Logger, make_logger, dependencies=[Config])
        provider = services.build()

        logger = await provider.get_required_service(Logger)

        assert logger.config is await provider.get_required_service(Config)
        assert await provider.get_required_service(Logger) is logger

    async def test_transient_factory_called_per_resolution(
        self,
        services: ServiceCollection,
    ) -> None:
        calls = 0

        def make_config(_provider: ServiceProvider) -> Config:
            nonlocal calls
            calls += 1
            return Config()

        services.add_transient_factory(Config, make_config)
        provider = services.build()

        await provider.get_required_service(Config)
        await provider.get_required_service(Config)

        assert calls == 2

    async def test_factory_returning_none(self, services: ServiceCollection) -> None:
        services.add_singleton_factory("nothing", lambda _provider: None)
        provider = services.build()

        assert await provider.get_required_service("nothing") is None

    async def test_factory_result_gets_init_hook(self, services: ServiceCollection) -> None:
        services.add_singleton_factory(Pool, lambda _provider: Pool())
        provider = services.build()

        pool = await provider.get_required_service(Pool)

        assert pool.ready


# =============================================================================
# Provider API
# =============================================================================


class TestProviderApi:
    async def test_get_service_returns_none_for_unknown(self, provider: ServiceProvider) -> None:
        assert await provider.get_service(Plugin) is None

    async def test_get_required_service_raises_for_unknown(
        self,
        provider: ServiceProvider,
    ) -> None:
        with pytest.raises(ServiceWireNotRegisteredError) as exc_info:
            await provider.get_required_service(Plugin)

        assert exc_info.value.token is Plugin

    async def test_missing_dependency_raises_not_registered(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_singleton(Logger, dependencies=[Config])
        provider = services.build()

        with pytest.raises(ServiceWireNotRegisteredError) as exc_info:
            await provider.get_required_service(Logger)

        assert exc_info.value.token is Config
        assert provider._in_flight == {}
        assert provider._partial_instances == {}
        assert provider._singletons == {}

    async def test_get_services_in_registration_order(self, services: ServiceCollection) -> None:
        services.add_singleton(Plugin, AuthPlugin)
        services.add_singleton(Plugin, MetricsPlugin)
        provider = services.build()

        plugins = await provider.get_services(Plugin)

        assert [type(plugin) for plugin in plugins] == [AuthPlugin, MetricsPlugin]
        assert await provider.get_required_service(Plugin) is plugins[1]

    async def test_get_services_of_unknown_token(self, provider: ServiceProvider) -> None:
        assert await provider.get_services(Plugin) == []

    async def test_is_service_never_constructs(self, services: ServiceCollection) -> None:
        constructed: list[str] = []
        services.add_singleton_factory("config", lambda _provider: constructed.append("config"))
        provider = services.build()

        assert provider.is_service("config")
        assert not provider.is_service("logger")
        assert constructed == []

    async def test_concurrent_requests_share_singleton(self, provider: ServiceProvider) -> None:
        loggers = await asyncio.gather(
            *(provider.get_required_service(Logger) for _ in range(5)),
        )

        assert all(logger is loggers[0] for logger in loggers)

    async def test_same_implementation_under_two_tokens(self, services: ServiceCollection) -> None:
        services.add_singleton("primary", Config)
        services.add_singleton("secondary", Config)
        provider = services.build()

        primary = await provider.get_required_service("primary")
        secondary = await provider.get_required_service("secondary")

        assert isinstance(primary, Config)
        assert primary is not secondary


# =============================================================================
# Overlapping Resolution
# =============================================================================


class Database:
    pass


class Reader:
    def __init__(self, database: Database) -> None:
        self.database = database


class Writer:
    def __init__(self, database: Database) -> None:
        self.database = database


class Application:
    def __init__(self, reader: Reader, writer: Writer) -> None:
        self.reader = reader
        self.writer = writer


def counting_factory(created: list[Database]):
    async def make_database(_provider: ServiceProvider) -> Database:
        await asyncio.sleep(0)
        database = Database()
        created.append(database)
        return database

    return make_database


def register_application(services: ServiceCollection) -> None:
    services.add_singleton(Reader, dependencies=[Database])
    services.add_singleton(Writer, dependencies=[Database])
    services.add_singleton(Application, dependencies=[Reader, Writer])


class TestOverlappingResolution:
    async def test_diamond_over_suspending_singleton_factory(
        self,
        services: ServiceCollection,
    ) -> None:
        created: list[Database] = []
        services.add_singleton_factory(Database, counting_factory(created))
        register_application(services)
        provider = services.build()

        application = await provider.get_required_service(Application)

        assert created == [application.reader.database]
        assert application.reader.database is application.writer.database
        assert provider._in_flight == {}

    async def test_concurrent_calls_share_suspending_singleton_factory(
        self,
        services: ServiceCollection,
    ) -> None:
        created: list[Database] = []
        services.add_singleton_factory(Database, counting_factory(created))
        provider = services.build()

        first, second = await asyncio.gather(
            provider.get_required_service(Database),
            provider.get_required_service(Database),
        )

        assert first is second
        assert created == [first]

    async def test_diamond_over_value_with_async_init(self, services: ServiceCollection) -> None:
        connection = Connection()
        services.add_value(Database, connection)
        register_application(services)
        provider = services.build()

        application = await provider.get_required_service(Application)

        assert application.reader.database is connection
        assert application.writer.database is connection
        assert connection.calls == ["init"]

    async def test_concurrent_calls_share_scoped_factory_within_scope(
        self,
        services: ServiceCollection,
    ) -> None:
        created: list[Database] = []
        services.add_scoped_factory(Database, counting_factory(created))
        provider = services.build()
        first_scope = provider.create_scope()
        second_scope = provider.create_scope()

        results = await asyncio.gather(
            first_scope.get_required_service(Database),
            first_scope.get_required_service(Database),
            second_scope.get_required_service(Database),
        )

        assert results[0] is results[1]
        assert results[0] is not results[2]
        assert len(created) == 2

    async def test_concurrent_transients_are_built_independently(
        self,
        services: ServiceCollection,
    ) -> None:
        created: list[Database] = []
        services.add_transient_factory(Database, counting_factory(created))
        provider = services.build()

        first, second = await asyncio.gather(
            provider.get_required_service(Database),
            provider.get_required_service(Database),
        )

        assert first is not second
        assert len(created) == 2

    async def test_failing_factory_fails_every_waiting_caller(
        self,
        services: ServiceCollection,
    ) -> None:
        attempts: list[int] = []

        async def make_database(_provider: ServiceProvider) -> Database:
            attempts.append(len(attempts))
            await asyncio.sleep(0)
            if len(attempts) == 1:
                msg = "database unavailable"
                raise ConnectionError(msg)
            return Database()

        services.add_singleton_factory(Database, make_database)
        provider = services.build()

        results = await asyncio.gather(
            provider.get_required_service(Database),
            provider.get_required_service(Database),
            return_exceptions=True,
        )

        assert [type(result) for result in results] == [ConnectionError, ConnectionError]
        assert attempts == [0]
        assert provider._in_flight == {}
        assert provider._waits == []

        assert isinstance(await provider.get_required_service(Database), Database)
        assert attempts == [0, 1]


# =============================================================================
# Allocation
# =============================================================================


class Endpoint(NamedTuple):
    host: str
    port: int


class TestAllocation:
    async def test_class_whose_new_requires_arguments_is_rejected(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_value("host", "localhost")
        services.add_value("port", 5432)
        services.add_singleton(Endpoint, dependencies=["host", "port"])
        provider = services.build()

        with pytest.raises(
            ServiceWireInvalidDescriptorError,
            match="cannot be allocated",
        ) as exc_info:
            await provider.get_required_service(Endpoint)

        assert exc_info.value.token is Endpoint
        assert isinstance(exc_info.value.__cause__, TypeError)
        assert provider._singletons == {}
        assert provider._in_flight == {}

    async def test_factory_builds_class_whose_new_requires_arguments(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_singleton_factory(Endpoint, lambda _provider: Endpoint("localhost", 5432))
        provider = services.build()

        assert await provider.get_required_service(Endpoint) == ("localhost", 5432)
