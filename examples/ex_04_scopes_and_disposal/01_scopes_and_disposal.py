"""Scopes, lifecycle hooks and disposal.

Services exposing ``on_init`` are initialized right after construction and
services exposing ``on_destroy`` are torn down when the provider that cached
them is disposed. A scope only disposes its own scoped instances; singletons
are disposed with the root provider.
"""

from __future__ import annotations

import asyncio

from servicewire import (
    ServiceCollection,
    ServiceWireDisposedProviderError,
    ServiceWireScopeViolationError,
)

events: list[str] = []


class ConnectionPool:
    async def on_init(self) -> None:
        await asyncio.sleep(0)
        events.append("pool opened")

    async def on_destroy(self) -> None:
        await asyncio.sleep(0)
        events.append("pool closed")


class UnitOfWork:
    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    def on_destroy(self) -> None:
        events.append("unit of work closed")


async def main() -> None:
    services = ServiceCollection()
    services.add_singleton(ConnectionPool)
    services.add_scoped(UnitOfWork, dependencies=[ConnectionPool])

    provider = services.build(validate_scopes=True)

    try:
        await provider.get_required_service(UnitOfWork)
    except ServiceWireScopeViolationError as error:
        print(f"root_resolution_error={type(error).__name__}")  # => root_resolution_error=ServiceWireScopeViolationError

    async with provider.create_scope() as scope:
        await scope.get_required_service(UnitOfWork)
        print(f"events_in_scope={events}")  # => events_in_scope=['pool opened']

    print(f"events_after_scope={events}")  # => events_after_scope=['pool opened', 'unit of work closed']

    await provider.dispose()
    print(f"events_after_dispose={events[-1]}")  # => events_after_dispose=pool closed

    try:
        provider.create_scope()
    except ServiceWireDisposedProviderError as error:
        print(f"disposed_error={error}")  # => disposed_error=Provider disposed.


if __name__ == "__main__":
    asyncio.run(main())
