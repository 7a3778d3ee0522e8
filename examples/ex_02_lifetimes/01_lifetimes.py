"""Lifetimes: singleton, scoped, transient, values and async factories.

- ``SINGLETON`` instances live on the root provider and are shared by every scope.
- ``SCOPED`` instances are shared within one scope.
- ``TRANSIENT`` instances are created for every resolution call.
"""

from __future__ import annotations

import asyncio

from servicewire import ServiceCollection, ServiceProvider


class Clock:
    pass


class RequestContext:
    pass


class Command:
    pass


class Settings:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn


class Database:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn


async def make_database(provider: ServiceProvider) -> Database:
    settings = await provider.get_required_service(Settings)
    await asyncio.sleep(0)
    return Database(settings.dsn)


async def main() -> None:
    settings = Settings("postgresql://localhost/app")

    services = ServiceCollection()
    services.add_singleton(Clock)
    services.add_scoped(RequestContext)
    services.add_transient(Command)
    services.add_value(Settings, settings)
    services.add_singleton_factory(Database, make_database, dependencies=[Settings])

    provider = services.build()
    first_scope = provider.create_scope()
    second_scope = provider.create_scope()

    first_clock = await first_scope.get_required_service(Clock)
    second_clock = await second_scope.get_required_service(Clock)
    singleton_shared = first_clock is second_clock
    print(f"singleton_shared_across_scopes={singleton_shared}")  # => singleton_shared_across_scopes=True

    first_context = await first_scope.get_required_service(RequestContext)
    second_context = await second_scope.get_required_service(RequestContext)
    scoped_same = first_context is await first_scope.get_required_service(RequestContext)
    print(f"scoped_same_within_scope={scoped_same}")  # => scoped_same_within_scope=True

    scoped_distinct = first_context is not second_context
    print(f"scoped_distinct_across_scopes={scoped_distinct}")  # => scoped_distinct_across_scopes=True

    first_command = await first_scope.get_required_service(Command)
    second_command = await first_scope.get_required_service(Command)
    transient_distinct = first_command is not second_command
    print(f"transient_distinct_per_call={transient_distinct}")  # => transient_distinct_per_call=True

    value_is_instance = await provider.get_required_service(Settings) is settings
    print(f"value_is_registered_instance={value_is_instance}")  # => value_is_registered_instance=True

    database = await provider.get_required_service(Database)
    print(f"async_factory_dsn={database.dsn}")  # => async_factory_dsn=postgresql://localhost/app

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
