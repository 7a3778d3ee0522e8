"""Keyed services and multiple registrations of one token.

Keyed registrations are looked up by ``(token, key)``. Every registration of
a token, keyed or not, is also returned by ``get_services`` in registration
order, and the last one wins for ``get_required_service``.
"""

from __future__ import annotations

import asyncio

from servicewire import ServiceCollection


class Notifier:
    channel = "base"


class EmailNotifier(Notifier):
    channel = "email"


class SmsNotifier(Notifier):
    channel = "sms"


async def main() -> None:
    services = ServiceCollection()
    services.add_keyed_singleton(Notifier, EmailNotifier, key="email")
    services.add_keyed_singleton(Notifier, SmsNotifier, key="sms")

    provider = services.build()

    sms = await provider.get_required_keyed_service(Notifier, "sms")
    print(f"keyed={sms.channel}")  # => keyed=sms

    missing = await provider.get_keyed_service(Notifier, "push")
    print(f"missing_key={missing}")  # => missing_key=None

    notifiers = await provider.get_services(Notifier)
    print(f"all={[notifier.channel for notifier in notifiers]}")  # => all=['email', 'sms']

    default = await provider.get_required_service(Notifier)
    print(f"default={default.channel}")  # => default=sms

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
