"""Circular dependencies between constructor-injected services.

When ``OrderService`` and ``InventoryService`` need each other, the provider
hands a placeholder of the service under construction to its dependency and
fills the placeholder in once the real constructor has run. Both services end
up holding fully initialized peers.
"""

from __future__ import annotations

import asyncio

from servicewire import ServiceCollection


class OrderService:
    def __init__(self, inventory: InventoryService) -> None:
        self.inventory = inventory
        self.orders: list[str] = []

    def place(self, item: str) -> str:
        if not self.inventory.reserve(item):
            return f"{item}: out of stock"
        self.orders.append(item)
        return f"{item}: ordered"


class InventoryService:
    def __init__(self, orders: OrderService) -> None:
        self.orders = orders
        self.stock = {"book": 1}

    def reserve(self, item: str) -> bool:
        if self.stock.get(item, 0) == 0:
            return False
        self.stock[item] -= 1
        return True

    def pending_orders(self) -> int:
        return len(self.orders.orders)


async def main() -> None:
    services = ServiceCollection()
    services.add_singleton(OrderService, dependencies=[InventoryService])
    services.add_singleton(InventoryService, dependencies=[OrderService])

    provider = services.build()

    orders = await provider.get_required_service(OrderService)
    inventory = await provider.get_required_service(InventoryService)

    print(orders.place("book"))  # => book: ordered
    print(orders.place("book"))  # => book: out of stock
    print(f"pending_orders={inventory.pending_orders()}")  # => pending_orders=1
    print(f"peers_linked={orders.inventory is inventory and inventory.orders is orders}")  # => peers_linked=True

    print(services.visualize_circular_dependencies().splitlines()[0])  # => Found 1 circular dependency/ies:

    await provider.dispose()


if __name__ == "__main__":
    asyncio.run(main())
