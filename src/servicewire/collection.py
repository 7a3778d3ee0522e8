from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from servicewire.descriptors import Lifetime, RegistrySnapshot, ServiceDescriptor
from servicewire.exceptions import (
    MissingDependency,
    ServiceWireInvalidDescriptorError,
    ServiceWireValidationError,
)
from servicewire.graph import CircularDependency, DependencyGraphAnalyzer, DependencyTreeNode
from servicewire.integrations.pydantic_settings import is_pydantic_settings_subclass
from servicewire.options import BuildOptions
from servicewire.provider import ServiceProvider
from servicewire.types import ServiceFactory, ServiceKey, Token

if TYPE_CHECKING:
    from typing_extensions import Self

logger = logging.getLogger(__name__)


class ServiceCollection:
    """Collect service descriptors and build providers from them.

    Registrations under a token are kept in registration order. Registering a
    token again never overwrites: the newest descriptor wins for single-result
    lookups while older ones stay visible to ``get_services`` and graph
    analysis.

    Examples:
        .. code-block:: python

            services = ServiceCollection()
            services.add_singleton(Logger)
            services.add_scoped(UserService, dependencies=[Logger])

            provider = services.build(validate_scopes=True)
            async with provider.create_scope() as scope:
                users = await scope.get_required_service(UserService)

    """

    def __init__(self) -> None:
        self._descriptors: dict[Token, list[ServiceDescriptor]] = {}
        self._keyed_descriptors: dict[ServiceKey, dict[Token, ServiceDescriptor]] = {}
        self._graph = DependencyGraphAnalyzer(self)

    # region Registration Methods

    def register(self, descriptor: ServiceDescriptor) -> Self:
        """Append a descriptor to its token's registrations.

        Keyed descriptors are also stored in the keyed index, where the last
        registration for a ``(key, token)`` pair wins.
        """
        self._descriptors.setdefault(descriptor.token, []).append(descriptor)
        if descriptor.key is not None:
            self._keyed_descriptors.setdefault(descriptor.key, {})[descriptor.token] = descriptor
        return self

    def add_implementation(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        lifetime: Lifetime = Lifetime.SINGLETON,
        dependencies: Iterable[Token] = (),
        key: ServiceKey | None = None,
    ) -> Self:
        """Register a class constructed with the resolved ``dependencies``.

        Args:
            token: Token the service is requested by.
            implementation: Class to construct. When omitted the token itself
                must be a class and is used as its own implementation.
            lifetime: Lifetime of produced instances.
            dependencies: Tokens passed positionally to the constructor.
            key: Optional key for ``get_keyed_service`` lookups.

        Raises:
            ServiceWireInvalidDescriptorError: If no implementation is given and
                the token is not a class.

        """
        if implementation is None:
            if not isinstance(token, type):
                raise ServiceWireInvalidDescriptorError(
                    token,
                    "token is not a class, pass an implementation explicitly",
                )
            implementation = token
        return self.register(
            ServiceDescriptor(
                token=token,
                lifetime=lifetime,
                implementation=implementation,
                dependencies=tuple(dependencies),
                key=key,
            ),
        )

    def add_factory(
        self,
        token: Token,
        factory: ServiceFactory,
        *,
        lifetime: Lifetime = Lifetime.SINGLETON,
        dependencies: Iterable[Token] = (),
        key: ServiceKey | None = None,
    ) -> Self:
        """Register a factory called with the resolving provider.

        The factory may be a coroutine function. ``dependencies`` are not passed
        to the factory; declare them so scope validation, build validation and
        graph analysis can see the edges the factory resolves itself.
        """
        return self.register(
            ServiceDescriptor(
                token=token,
                lifetime=lifetime,
                factory=factory,
                dependencies=tuple(dependencies),
                key=key,
            ),
        )

    def add_value(self, token: Token, value: Any, *, key: ServiceKey | None = None) -> Self:
        """Register a precomputed instance. Values are always singletons."""
        return self.register(
            ServiceDescriptor(token=token, lifetime=Lifetime.SINGLETON, value=value, key=key),
        )

    def add_singleton(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_implementation(
            token,
            implementation,
            lifetime=Lifetime.SINGLETON,
            dependencies=dependencies,
        )

    def add_scoped(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_implementation(
            token,
            implementation,
            lifetime=Lifetime.SCOPED,
            dependencies=dependencies,
        )

    def add_transient(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_implementation(
            token,
            implementation,
            lifetime=Lifetime.TRANSIENT,
            dependencies=dependencies,
        )

    def add_singleton_factory(
        self,
        token: Token,
        factory: ServiceFactory,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_factory(
            token,
            factory,
            lifetime=Lifetime.SINGLETON,
            dependencies=dependencies,
        )

    def add_scoped_factory(
        self,
        token: Token,
        factory: ServiceFactory,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_factory(token, factory, lifetime=Lifetime.SCOPED, dependencies=dependencies)

    def add_transient_factory(
        self,
        token: Token,
        factory: ServiceFactory,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self.add_factory(
            token,
            factory,
            lifetime=Lifetime.TRANSIENT,
            dependencies=dependencies,
        )

    def try_add_singleton(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        """Register a singleton only if ``token`` has no registration yet."""
        if token in self:
            return self
        return self.add_singleton(token, implementation, dependencies=dependencies)

    def try_add_scoped(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        """Register a scoped service only if ``token`` has no registration yet."""
        if token in self:
            return self
        return self.add_scoped(token, implementation, dependencies=dependencies)

    def try_add_transient(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        """Register a transient service only if ``token`` has no registration yet."""
        if token in self:
            return self
        return self.add_transient(token, implementation, dependencies=dependencies)

    def add_keyed_singleton(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        key: ServiceKey,
        factory: ServiceFactory | None = None,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self._add_keyed(
            token,
            implementation,
            factory,
            Lifetime.SINGLETON,
            key,
            dependencies,
        )

    def add_keyed_scoped(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        key: ServiceKey,
        factory: ServiceFactory | None = None,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self._add_keyed(
            token,
            implementation,
            factory,
            Lifetime.SCOPED,
            key,
            dependencies,
        )

    def add_keyed_transient(
        self,
        token: Token,
        implementation: type[Any] | None = None,
        *,
        key: ServiceKey,
        factory: ServiceFactory | None = None,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        return self._add_keyed(
            token,
            implementation,
            factory,
            Lifetime.TRANSIENT,
            key,
            dependencies,
        )

    def _add_keyed(
        self,
        token: Token,
        implementation: type[Any] | None,
        factory: ServiceFactory | None,
        lifetime: Lifetime,
        key: ServiceKey,
        dependencies: Iterable[Token],
    ) -> Self:
        if factory is not None:
            if implementation is not None:
                raise ServiceWireInvalidDescriptorError(
                    token,
                    "only one of implementation or factory is allowed",
                )
            return self.add_factory(
                token,
                factory,
                lifetime=lifetime,
                dependencies=dependencies,
                key=key,
            )
        return self.add_implementation(
            token,
            implementation,
            lifetime=lifetime,
            dependencies=dependencies,
            key=key,
        )

    def add_settings(self, settings_cls: type[Any]) -> Self:
        """Register a pydantic-settings class as a singleton read from the environment.

        Raises:
            ServiceWireInvalidDescriptorError: If ``settings_cls`` is not a
                ``BaseSettings`` subclass or pydantic-settings is not installed.

        """
        if not is_pydantic_settings_subclass(settings_cls):
            raise ServiceWireInvalidDescriptorError(
                settings_cls,
                "expected a pydantic-settings BaseSettings subclass",
            )
        return self.add_singleton_factory(settings_cls, lambda _provider: settings_cls())

    # endregion Registration Methods

    def remove(self, token: Token) -> Self:
        """Drop every registration of ``token``, keyed ones included."""
        self._descriptors.pop(token, None)
        for key in list(self._keyed_descriptors):
            by_token = self._keyed_descriptors[key]
            by_token.pop(token, None)
            if not by_token:
                del self._keyed_descriptors[key]
        return self

    def replace_implementation(
        self,
        token: Token,
        implementation: type[Any],
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        """Replace all registrations of ``token`` with one implementation.

        The lifetime of the most recent replaced registration is kept;
        ``SINGLETON`` is used when the token was not registered.
        """
        lifetime = self._lifetime_before_replace(token)
        self.remove(token)
        return self.add_implementation(
            token,
            implementation,
            lifetime=lifetime,
            dependencies=dependencies,
        )

    def replace_factory(
        self,
        token: Token,
        factory: ServiceFactory,
        *,
        dependencies: Iterable[Token] = (),
    ) -> Self:
        """Replace all registrations of ``token`` with one factory, keeping the lifetime."""
        lifetime = self._lifetime_before_replace(token)
        self.remove(token)
        return self.add_factory(token, factory, lifetime=lifetime, dependencies=dependencies)

    def _lifetime_before_replace(self, token: Token) -> Lifetime:
        descriptor = self.lookup(token)
        return descriptor.lifetime if descriptor is not None else Lifetime.SINGLETON

    def lookup(self, token: Token) -> ServiceDescriptor | None:
        """Return the last descriptor registered for ``token``."""
        descriptors = self._descriptors.get(token)
        return descriptors[-1] if descriptors else None

    def descriptors(self, token: Token) -> list[ServiceDescriptor]:
        return list(self._descriptors.get(token, ()))

    def tokens(self) -> Iterator[Token]:
        return iter(self._descriptors)

    def __contains__(self, token: object) -> bool:
        return bool(self._descriptors.get(token))

    def __len__(self) -> int:
        return len(self._descriptors)

    def build(
        self,
        options: BuildOptions | None = None,
        *,
        validate_scopes: bool | None = None,
        validate_on_build: bool | None = None,
    ) -> ServiceProvider:
        """Snapshot the registrations and return a root provider.

        Args:
            options: Build options. Keyword flags override its fields.
            validate_scopes: Reject scoped services resolved from the root
                provider or injected into root-constructed services.
            validate_on_build: Check that every declared dependency is
                registered before returning.

        Raises:
            ServiceWireValidationError: If ``validate_on_build`` is set and one
                or more dependencies are missing. All missing edges are reported.

        """
        options = options or BuildOptions()
        options = BuildOptions(
            validate_scopes=options.validate_scopes if validate_scopes is None else validate_scopes,
            validate_on_build=(
                options.validate_on_build if validate_on_build is None else validate_on_build
            ),
        )

        if options.validate_on_build:
            missing = self._find_missing_dependencies()
            if missing:
                raise ServiceWireValidationError(missing)

        snapshot = RegistrySnapshot.from_maps(self._descriptors, self._keyed_descriptors)
        logger.debug(
            "Building service provider for %d tokens (validate_scopes=%s)",
            len(self._descriptors),
            options.validate_scopes,
        )
        return ServiceProvider(snapshot, validate_scopes=options.validate_scopes)

    def _find_missing_dependencies(self) -> list[MissingDependency]:
        missing = [
            MissingDependency(dependency=dependency, required_by=token)
            for token, descriptors in self._descriptors.items()
            for descriptor in descriptors
            for dependency in descriptor.dependencies
            if dependency not in self
        ]
        missing.extend(
            MissingDependency(dependency=dependency, required_by=token, key=key)
            for key, by_token in self._keyed_descriptors.items()
            for token, descriptor in by_token.items()
            for dependency in descriptor.dependencies
            if dependency not in self
        )
        return missing

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
