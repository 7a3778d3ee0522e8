"""Quickstart: register services, build a provider and resolve inside a scope.

Dependencies are declared as token lists and passed positionally to the
constructor. The provider is built with scope validation so scoped services
can only be resolved through ``create_scope()``.
"""

from __future__ import annotations

import asyncio

from servicewire import ServiceCollection


class Logger:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def log(self, message: str) -> None:
        self.lines.append(message)


class UserRepository:
    def __init__(self) -> None:
        self.users: dict[int, str] = {}

    def add(self, user_id: int, name: str) -> None:
        self.users[user_id] = name


class UserService:
    def __init__(self, repository: UserRepository, logger: Logger) -> None:
        self.repository = repository
        self.logger = logger

    def create_user(self, user_id: int, name: str) -> str:
        self.repository.add(user_id, name)
        self.logger.log(f"created user {name}")
        return name


async def main() -> None:
    services = ServiceCollection()
    services.add_singleton(Logger)
    services.add_scoped(UserRepository)
    services.add_scoped(UserService, dependencies=[UserRepository, Logger])

    provider = services.build(validate_scopes=True)

    async with provider.create_scope() as scope:
        users = await scope.get_required_service(UserService)
        print(users.create_user(1, "ada"))  # => ada
        same_service = users is await scope.get_required_service(UserService)

    print(f"same_service_in_scope={same_service}")  # => same_service_in_scope=True

    logger = await provider.get_required_service(Logger)
    print(f"log={logger.lines}")  # => log=['created user ada']

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
