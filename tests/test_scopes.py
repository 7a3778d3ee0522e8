"""Tests for scope validation."""

from __future__ import annotations

import pytest

from servicewire.collection import ServiceCollection
from servicewire.exceptions import ServiceWireScopeViolationError
from servicewire.options import BuildOptions
from servicewire.provider import ServiceProvider


class Logger:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def log(self, line: str) -> None:
        self.lines.append(line)


class UserService:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger

    def create_user(self, name: str) -> str:
        self.logger.log(f"created {name}")
        return name


class RequestContext:
    pass


class Cache:
    def __init__(self, context: RequestContext) -> None:
        self.context = context


class Handler:
    def __init__(self, context: RequestContext) -> None:
        self.context = context


class TestScopeValidation:
    async def test_scoped_service_through_scope(self, services: ServiceCollection) -> None:
        services.add_singleton(Logger)
        services.add_scoped(UserService, dependencies=[Logger])
        provider = services.build(validate_scopes=True)

        async with provider.create_scope() as scope:
            users = await scope.get_required_service(UserService)
            assert users.create_user("ada") == "ada"
            assert users.logger is await provider.get_required_service(Logger)

        assert users.logger.lines == ["created ada"]

    async def test_scoped_service_from_root_is_rejected(self, services: ServiceCollection) -> None:
        services.add_scoped(RequestContext)
        provider = services.build(validate_scopes=True)

        with pytest.raises(ServiceWireScopeViolationError) as exc_info:
            await provider.get_required_service(RequestContext)

        assert exc_info.value.token is RequestContext
        assert exc_info.value.dependent is None
        assert "Create a scope first." in str(exc_info.value)

    async def test_scoped_service_from_root_via_get_service(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_scoped(RequestContext)
        provider = services.build(BuildOptions(validate_scopes=True))

        with pytest.raises(ServiceWireScopeViolationError):
            await provider.get_service(RequestContext)

    async def test_scoped_dependency_of_singleton_is_rejected(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_scoped(RequestContext)
        services.add_singleton(Cache, dependencies=[RequestContext])
        provider = services.build(validate_scopes=True)
        scope = provider.create_scope()

        with pytest.raises(ServiceWireScopeViolationError) as exc_info:
            await scope.get_required_service(Cache)

        assert exc_info.value.token is RequestContext
        assert exc_info.value.dependent is Cache
        assert "into singleton service 'Cache'" in str(exc_info.value)
        assert provider._partial_instances == {}
        assert provider._in_flight == {}

    async def test_scoped_dependency_of_root_transient_is_rejected(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_scoped(RequestContext)
        services.add_transient(Handler, dependencies=[RequestContext])
        provider = services.build(validate_scopes=True)

        with pytest.raises(ServiceWireScopeViolationError) as exc_info:
            await provider.get_required_service(Handler)

        assert exc_info.value.dependent is Handler
        assert "into root service 'Handler'" in str(exc_info.value)

    async def test_scoped_dependency_of_singleton_factory_is_rejected(
        self,
        services: ServiceCollection,
    ) -> None:
        async def make_cache(provider: ServiceProvider) -> Cache:
            return Cache(await provider.get_required_service(RequestContext))

        services.add_scoped(RequestContext)
        services.add_singleton_factory(Cache, make_cache, dependencies=[RequestContext])
        provider = services.build(validate_scopes=True)

        with pytest.raises(ServiceWireScopeViolationError) as exc_info:
            await provider.create_scope().get_required_service(Cache)

        assert exc_info.value.dependent is Cache

    async def test_transient_with_scoped_dependency_in_scope(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_scoped(RequestContext)
        services.add_transient(Handler, dependencies=[RequestContext])
        provider = services.build(validate_scopes=True)
        scope = provider.create_scope()

        first = await scope.get_required_service(Handler)
        second = await scope.get_required_service(Handler)

        assert first is not second
        assert first.context is second.context

    async def test_validation_disabled_allows_captive_dependency(
        self,
        services: ServiceCollection,
    ) -> None:
        services.add_scoped(RequestContext)
        services.add_singleton(Cache, dependencies=[RequestContext])
        provider = services.build()

        cache = await provider.create_scope().get_required_service(Cache)

        assert isinstance(cache.context, RequestContext)
        assert await provider.get_required_service(Cache) is cache

    async def test_scopes_inherit_validation(self, services: ServiceCollection) -> None:
        services.add_scoped(RequestContext)
        services.add_singleton(Cache, dependencies=[RequestContext])
        provider = services.build(validate_scopes=True)
        nested = provider.create_scope().create_scope()

        assert isinstance(await nested.get_required_service(RequestContext), RequestContext)
        with pytest.raises(ServiceWireScopeViolationError):
            await nested.get_required_service(Cache)
