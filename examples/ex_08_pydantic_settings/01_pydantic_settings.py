"""Pydantic settings registration.

``add_settings`` registers a ``BaseSettings`` subclass as a singleton factory
that reads the environment the first time it is resolved.
"""

from __future__ import annotations

import asyncio
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from servicewire import ServiceCollection


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EXAMPLE_")

    value: str = "settings"


async def main() -> None:
    os.environ["EXAMPLE_VALUE"] = "from-env"

    services = ServiceCollection()
    services.add_settings(AppSettings)
    provider = services.build()

    first = await provider.get_required_service(AppSettings)
    second = await provider.create_scope().get_required_service(AppSettings)

    print(f"settings_singleton={first is second}")  # => settings_singleton=True
    print(f"settings_value={first.value}")  # => settings_value=from-env

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
