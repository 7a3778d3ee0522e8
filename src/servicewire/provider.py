from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from contextvars import ContextVar
from types import MappingProxyType, TracebackType
from typing import TYPE_CHECKING, Any, TypeVar, overload

from servicewire.descriptors import (
    DescriptorIdentity,
    Lifetime,
    RegistrySnapshot,
    ServiceDescriptor,
)
from servicewire.exceptions import (
    ServiceWireCircularStructureError,
    ServiceWireDisposedProviderError,
    ServiceWireInvalidDescriptorError,
    ServiceWireNotRegisteredError,
    ServiceWireScopeViolationError,
)
from servicewire.graph import (
    CircularDependency,
    DependencyGraphAnalyzer,
    DependencyTreeNode,
)
from servicewire.types import ServiceKey, Token, token_name

if TYPE_CHECKING:
    from typing_extensions import Self

T = TypeVar("T")

logger = logging.getLogger(__name__)

_UNMANGLED_SLOTS = {"__dict__", "__weakref__"}

_Link = tuple[int, DescriptorIdentity]
_NOT_ALLOCATED = object()

# Constructions the current task is nested in, keyed by (provider id, identity),
# with the placeholder of each implementation once it is allocated.
_resolution_chain: ContextVar[Mapping[_Link, Any]] = ContextVar(
    "servicewire_resolution_chain",
    default=MappingProxyType({}),
)


class ServiceProvider:
    """Resolve services from a registry snapshot.

    A provider built by ``ServiceCollection.build`` is the root of a scope
    tree; ``create_scope`` returns child providers sharing the same snapshot.
    Singletons are cached on the root and shared by every scope, scoped
    instances are cached by the scope that created them, and transient
    instances are never cached.

    Circular dependencies between implementation descriptors are resolved with
    placeholders: the instance is allocated before its dependencies are
    resolved, handed out to any dependency that loops back to it, and populated
    with the state of the genuinely constructed object once every dependency is
    available. Such implementations must be allocatable with ``cls.__new__(cls)``;
    classes whose ``__new__`` requires arguments (``NamedTuple`` subclasses, for
    example) are rejected with ``ServiceWireInvalidDescriptorError`` when they
    are resolved.

    Overlapping requests for a singleton or scoped service that is still being
    constructed wait for that construction instead of starting another one.
    """

    def __init__(
        self,
        snapshot: RegistrySnapshot,
        *,
        validate_scopes: bool = False,
        parent: ServiceProvider | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._validate_scopes = validate_scopes
        self._parent = parent
        self._graph = DependencyGraphAnalyzer(snapshot)

        # Only populated on the root provider.
        self._singletons: dict[DescriptorIdentity, Any] = {}
        self._scoped_instances: dict[DescriptorIdentity, Any] = {}

        # Cached identities under construction on this tier and their placeholders.
        self._in_flight: dict[DescriptorIdentity, asyncio.Future[Any]] = {}
        self._partial_instances: dict[DescriptorIdentity, Any] = {}

        # Only populated on the root provider: (waiter chain, awaited construction).
        self._waits: list[tuple[frozenset[_Link], _Link]] = []

        self._disposed = False

    @property
    def parent(self) -> ServiceProvider | None:
        return self._parent

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def _root(self) -> ServiceProvider:
        provider = self
        while provider._parent is not None:
            provider = provider._parent
        return provider

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise ServiceWireDisposedProviderError

    # region Resolution

    @overload
    async def get_service(self, token: type[T]) -> T | None: ...

    @overload
    async def get_service(self, token: Token) -> Any: ...

    async def get_service(self, token: Token) -> Any:
        """Resolve the last registration of ``token``, or return ``None`` if there is none.

        Raises:
            ServiceWireDisposedProviderError: If the provider was disposed.
            ServiceWireScopeViolationError: If scope validation rejects the
                resolution.

        """
        self._ensure_alive()
        descriptor = self._snapshot.lookup(token)
        if descriptor is None:
            return None
        return await self._resolve(descriptor)

    @overload
    async def get_required_service(self, token: type[T]) -> T: ...

    @overload
    async def get_required_service(self, token: Token) -> Any: ...

    async def get_required_service(self, token: Token) -> Any:
        """Resolve the last registration of ``token``.

        Args:
            token: Token to resolve.

        Returns:
            The resolved instance.

        Raises:
            ServiceWireNotRegisteredError: If ``token`` is not registered, or
                one of its dependencies is not.
            ServiceWireDisposedProviderError: If the provider was disposed.
            ServiceWireScopeViolationError: If scope validation rejects the
                resolution.

        Examples:
            .. code-block:: python

                logger = await provider.get_required_service(Logger)

        """
        self._ensure_alive()
        descriptor = self._snapshot.lookup(token)
        if descriptor is None:
            raise ServiceWireNotRegisteredError(token)
        return await self._resolve(descriptor)

    async def get_services(self, token: Token) -> list[Any]:
        """Resolve every registration of ``token`` in registration order.

        Returns an empty list when ``token`` is not registered.
        """
        self._ensure_alive()
        descriptors = self._snapshot.lookup_all(token)
        if not descriptors:
            return []
        instances = await asyncio.gather(*(self._resolve(descriptor) for descriptor in descriptors))
        return list(instances)

    async def get_keyed_service(self, token: Token, key: ServiceKey) -> Any:
        """Resolve the registration of ``token`` under ``key``, or return ``None``."""
        self._ensure_alive()
        descriptor = self._snapshot.lookup_keyed(token, key)
        if descriptor is None:
            return None
        return await self._resolve(descriptor)

    async def get_required_keyed_service(self, token: Token, key: ServiceKey) -> Any:
        """Resolve the registration of ``token`` under ``key``.

        Raises:
            ServiceWireNotRegisteredError: If there is no such keyed registration.

        """
        self._ensure_alive()
        descriptor = self._snapshot.lookup_keyed(token, key)
        if descriptor is None:
            raise ServiceWireNotRegisteredError(token, key)
        return await self._resolve(descriptor)

    def is_service(self, token: Token) -> bool:
        """Return whether ``token`` is registered. Never constructs anything."""
        self._ensure_alive()
        return self._snapshot.lookup(token) is not None

    async def _resolve(self, descriptor: ServiceDescriptor) -> Any:
        lifetime = descriptor.lifetime
        if lifetime is Lifetime.SINGLETON:
            root = self._root()
            root._ensure_alive()
            return await root._resolve_on_tier(descriptor, root._singletons)

        if lifetime is Lifetime.SCOPED:
            if self._validate_scopes and self.is_root:
                raise ServiceWireScopeViolationError(descriptor.token)
            return await self._resolve_on_tier(descriptor, self._scoped_instances)

        return await self._resolve_on_tier(descriptor, cache=None)

    async def _resolve_on_tier(
        self,
        descriptor: ServiceDescriptor,
        cache: dict[DescriptorIdentity, Any] | None,
    ) -> Any:
        identity = descriptor.identity
        if cache is not None and identity in cache:
            return cache[identity]

        chain = _resolution_chain.get()
        link = (id(self), identity)
        if link in chain:
            return self._reenter(descriptor, chain[link])

        pending = self._in_flight.get(identity)
        if pending is not None:
            return await self._await_construction(descriptor, pending, chain)

        future: asyncio.Future[Any] | None = None
        if cache is not None:
            future = asyncio.get_running_loop().create_future()
            self._in_flight[identity] = future

        chain_token = _resolution_chain.set(MappingProxyType({**chain, link: _NOT_ALLOCATED}))
        try:
            instance = await self._create_instance(descriptor, shared=future is not None)
        except asyncio.CancelledError:
            if future is not None:
                future.cancel()
            raise
        except Exception as error:
            if future is not None:
                future.set_exception(error)
                # Mark retrieved; waiters re-raise it themselves.
                future.exception()
            raise
        else:
            if cache is not None:
                cache[identity] = instance
            if future is not None:
                future.set_result(instance)
            return instance
        finally:
            _resolution_chain.reset(chain_token)
            if future is not None:
                del self._in_flight[identity]
                self._partial_instances.pop(identity, None)

    def _reenter(self, descriptor: ServiceDescriptor, placeholder: Any) -> Any:
        if placeholder is _NOT_ALLOCATED:
            raise ServiceWireCircularStructureError(
                descriptor.token,
                descriptor.lifetime.value.lower(),
            )
        logger.debug(
            "Circular dependency on %s resolved with a placeholder",
            token_name(descriptor.token),
        )
        return placeholder

    async def _await_construction(
        self,
        descriptor: ServiceDescriptor,
        pending: asyncio.Future[Any],
        chain: Mapping[_Link, Any],
    ) -> Any:
        """Wait for a construction started by another resolution call.

        If that construction is itself blocked on this call, waiting would never
        finish, so the cycle is closed with its placeholder instead.
        """
        link = (id(self), descriptor.identity)
        waits = self._root()._waits
        if _is_blocked_on(waits, link, chain):
            placeholder = self._partial_instances.get(descriptor.identity, _NOT_ALLOCATED)
            return self._reenter(descriptor, placeholder)

        wait = (frozenset(chain), link)
        waits.append(wait)
        try:
            return await asyncio.shield(pending)
        finally:
            waits.remove(wait)

    async def _create_instance(self, descriptor: ServiceDescriptor, *, shared: bool) -> Any:
        if descriptor.has_value:
            instance = descriptor.value
        elif descriptor.factory is not None:
            if self._validate_scopes:
                self._validate_dependency_scopes(descriptor)
            instance = descriptor.factory(self)
            if inspect.isawaitable(instance):
                instance = await instance
        else:
            implementation = descriptor.implementation
            if self._validate_scopes:
                self._validate_dependency_scopes(descriptor)

            placeholder = _allocate(descriptor)
            link = (id(self), descriptor.identity)
            _resolution_chain.set(
                MappingProxyType({**_resolution_chain.get(), link: placeholder}),
            )
            if shared:
                self._partial_instances[descriptor.identity] = placeholder

            dependencies = await asyncio.gather(
                *(self.get_required_service(dependency) for dependency in descriptor.dependencies),
            )
            _transfer_state(implementation(*dependencies), placeholder)
            instance = placeholder

        await _call_hook(instance, "on_init")
        logger.debug(
            "Created %s service %s",
            descriptor.lifetime.value.lower(),
            token_name(descriptor.token),
        )
        return instance

    def _validate_dependency_scopes(self, descriptor: ServiceDescriptor) -> None:
        if not self.is_root:
            return
        for dependency in descriptor.dependencies:
            dependency_descriptor = self._snapshot.lookup(dependency)
            if dependency_descriptor is None:
                continue
            if dependency_descriptor.lifetime is Lifetime.SCOPED:
                raise ServiceWireScopeViolationError(
                    dependency,
                    descriptor.token,
                    dependent_lifetime=descriptor.lifetime.value.lower(),
                )

    # endregion Resolution

    # region Scope Management

    def create_scope(self) -> ServiceProvider:
        """Create a child provider sharing this provider's registrations and singletons.

        Raises:
            ServiceWireDisposedProviderError: If the provider was disposed.

        Examples:
            .. code-block:: python

                async with provider.create_scope() as scope:
                    users = await scope.get_required_service(UserService)

        """
        self._ensure_alive()
        logger.debug("Creating scope of provider %#x", id(self))
        return ServiceProvider(self._snapshot, validate_scopes=self._validate_scopes, parent=self)

    async def dispose(self) -> None:
        """Run ``on_destroy`` hooks of instances cached by this provider and close it.

        A root provider disposes its singletons and values; a scope disposes only
        its own scoped instances. Hook failures are logged and do not stop the
        remaining instances from being disposed. Disposing twice is a no-op.
        """
        if self._disposed:
            return

        instances = [*self._singletons.values(), *self._scoped_instances.values()]
        for instance in instances:
            try:
                await _call_hook(instance, "on_destroy")
            except Exception:
                logger.exception("Failed to dispose service instance %r", instance)

        self._singletons.clear()
        self._scoped_instances.clear()
        self._disposed = True
        logger.debug("Disposed provider %#x (%d instances)", id(self), len(instances))

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.dispose()

    # endregion Scope Management

    # region Diagnostics

    def get_dependency_tree(self, token: Token) -> DependencyTreeNode:
        return self._graph.get_dependency_tree(token)

    def get_circular_dependencies(self) -> list[CircularDependency]:
        return self._graph.get_circular_dependencies()

    def visualize_dependency_tree(self, token: Token) -> str:
        return self._graph.visualize_dependency_tree(token)

    def visualize_circular_dependencies(self) -> str:
        return self._graph.visualize_circular_dependencies()

    # endregion Diagnostics


async def _call_hook(instance: object, name: str) -> None:
    hook = getattr(instance, name, None)
    if not callable(hook):
        return
    result = hook()
    if inspect.isawaitable(result):
        await result


def _allocate(descriptor: ServiceDescriptor) -> Any:
    implementation = descriptor.implementation
    try:
        return implementation.__new__(implementation)
    except TypeError as error:
        reason = f"{implementation.__qualname__} cannot be allocated without constructor arguments"
        raise ServiceWireInvalidDescriptorError(descriptor.token, reason) from error


def _is_blocked_on(
    waits: list[tuple[frozenset[_Link], _Link]],
    start: _Link,
    chain: Mapping[_Link, Any],
) -> bool:
    """Return whether ``start`` transitively waits on a construction in ``chain``."""
    frontier = [start]
    seen: set[_Link] = set()
    while frontier:
        link = frontier.pop()
        if link in chain:
            return True
        if link in seen:
            continue
        seen.add(link)
        frontier.extend(target for waiting, target in waits if link in waiting)
    return False


def _transfer_state(source: object, target: object) -> None:
    """Copy instance attributes of ``source`` onto ``target`` in place."""
    source_dict = getattr(source, "__dict__", None)
    if source_dict is not None:
        target.__dict__.update(source_dict)

    for cls in type(source).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in _UNMANGLED_SLOTS:
                continue
            if slot.startswith("__") and not slot.endswith("__"):
                slot = f"_{cls.__name__.lstrip('_')}{slot}"
            try:
                value = getattr(source, slot)
            except AttributeError:
                continue
            object.__setattr__(target, slot, value)
