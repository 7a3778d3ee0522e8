from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Protocol, TypeAlias

from servicewire.exceptions import ServiceWireInvalidDescriptorError
from servicewire.types import ServiceFactory, ServiceKey, Token

DescriptorKind: TypeAlias = Literal["implementation", "factory", "value"]

DescriptorIdentity: TypeAlias = tuple[Token, DescriptorKind, Any]
"""Cache identity of a descriptor: token plus the implementation/factory/value it builds."""

_NO_VALUE: Any = object()


class Lifetime(str, Enum):
    """Defines the lifetime of a service in the provider tree."""

    SINGLETON = "SINGLETON"
    """A single instance is created and shared by the root provider and every scope."""

    SCOPED = "SCOPED"
    """Instance is shared within a scope, different instances across scopes."""

    TRANSIENT = "TRANSIENT"
    """A new instance is created for every top-level resolution call."""


@dataclass(frozen=True, slots=True, kw_only=True)
class ServiceDescriptor:
    """A recipe describing how to produce one service.

    Exactly one of ``implementation``, ``factory`` or ``value`` must be given.
    ``dependencies`` lists the tokens resolved and passed positionally to the
    implementation constructor; for factories they are only used by validation
    and graph analysis, the factory itself receives the resolving provider.
    """

    token: Token
    """The token this descriptor is registered under."""
    lifetime: Lifetime = Lifetime.SINGLETON
    """How long a produced instance is cached."""
    implementation: type[Any] | None = None
    """A class constructed with the resolved dependencies."""
    factory: ServiceFactory | None = None
    """A callable receiving the provider, returning an instance or an awaitable."""
    value: Any = _NO_VALUE
    """A precomputed instance."""
    dependencies: tuple[Token, ...] = field(default=())
    """Tokens resolved before construction, in constructor argument order."""
    key: ServiceKey | None = None
    """Optional key for keyed lookups."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        given = [
            name
            for name, present in (
                ("implementation", self.implementation is not None),
                ("factory", self.factory is not None),
                ("value", self.value is not _NO_VALUE),
            )
            if present
        ]
        if not given:
            raise ServiceWireInvalidDescriptorError(
                self.token,
                "one of implementation, factory or value is required",
            )
        if len(given) > 1:
            raise ServiceWireInvalidDescriptorError(
                self.token,
                f"only one of implementation, factory or value is allowed, got {', '.join(given)}",
            )
        if self.implementation is not None and not isinstance(self.implementation, type):
            raise ServiceWireInvalidDescriptorError(
                self.token,
                f"implementation {self.implementation!r} is not a class",
            )
        if self.has_value and self.lifetime is not Lifetime.SINGLETON:
            raise ServiceWireInvalidDescriptorError(self.token, "values are always singletons")

    @property
    def has_value(self) -> bool:
        return self.value is not _NO_VALUE

    @property
    def kind(self) -> DescriptorKind:
        if self.implementation is not None:
            return "implementation"
        if self.factory is not None:
            return "factory"
        return "value"

    @property
    def identity(self) -> DescriptorIdentity:
        """Return the cache identity shared by descriptors building the same thing."""
        if self.implementation is not None:
            return (self.token, "implementation", self.implementation)
        if self.factory is not None:
            return (self.token, "factory", self.factory)
        return (self.token, "value", id(self.value))


class DescriptorSource(Protocol):
    """Read-only view over registered descriptors used by graph analysis."""

    def lookup(self, token: Token) -> ServiceDescriptor | None:
        """Return the last descriptor registered for ``token``."""

    def tokens(self) -> Iterator[Token]:
        """Iterate registered tokens in registration order."""


@dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """Immutable copy of a collection's descriptor maps taken at build time."""

    descriptors_by_token: Mapping[Token, tuple[ServiceDescriptor, ...]]
    keyed_descriptors: Mapping[ServiceKey, Mapping[Token, ServiceDescriptor]]

    @classmethod
    def from_maps(
        cls,
        descriptors_by_token: Mapping[Token, list[ServiceDescriptor]],
        keyed_descriptors: Mapping[ServiceKey, Mapping[Token, ServiceDescriptor]],
    ) -> RegistrySnapshot:
        return cls(
            descriptors_by_token=MappingProxyType(
                {token: tuple(descriptors) for token, descriptors in descriptors_by_token.items()},
            ),
            keyed_descriptors=MappingProxyType(
                {
                    key: MappingProxyType(dict(by_token))
                    for key, by_token in keyed_descriptors.items()
                },
            ),
        )

    def lookup(self, token: Token) -> ServiceDescriptor | None:
        descriptors = self.descriptors_by_token.get(token)
        return descriptors[-1] if descriptors else None

    def lookup_all(self, token: Token) -> tuple[ServiceDescriptor, ...]:
        return self.descriptors_by_token.get(token, ())

    def lookup_keyed(self, token: Token, key: ServiceKey) -> ServiceDescriptor | None:
        by_token = self.keyed_descriptors.get(key)
        if by_token is None:
            return None
        return by_token.get(token)

    def tokens(self) -> Iterator[Token]:
        return iter(self.descriptors_by_token)
