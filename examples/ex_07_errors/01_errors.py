"""Errors raised while registering, building and resolving.

All errors derive from ``ServiceWireError``.
"""

from __future__ import annotations

import asyncio

from servicewire import (
    ServiceCollection,
    ServiceProvider,
    ServiceWireCircularStructureError,
    ServiceWireError,
    ServiceWireInvalidDescriptorError,
    ServiceWireNotRegisteredError,
    ServiceWireValidationError,
)


class Mailer:
    def __init__(self, transport: object) -> None:
        self.transport = transport


async def make_config(provider: ServiceProvider) -> object:
    return await provider.get_required_service("config")


async def main() -> None:
    services = ServiceCollection()

    try:
        services.add_singleton("mailer")
    except ServiceWireInvalidDescriptorError as error:
        print(f"invalid_descriptor={isinstance(error, ServiceWireError)}")  # => invalid_descriptor=True

    services.add_singleton(Mailer, dependencies=["transport"])
    try:
        services.build(validate_on_build=True)
    except ServiceWireValidationError as error:
        print(error.errors[0].describe())  # => Missing dependency: 'transport' required by <class '__main__.Mailer'>

    services.add_singleton_factory("config", make_config)
    provider = services.build()

    try:
        await provider.get_required_service(Mailer)
    except ServiceWireNotRegisteredError as error:
        print(f"not_registered={error.token}")  # => not_registered=transport

    try:
        await provider.get_required_service("config")
    except ServiceWireCircularStructureError as error:
        print(f"circular_structure={error.lifetime}")  # => circular_structure=singleton

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
