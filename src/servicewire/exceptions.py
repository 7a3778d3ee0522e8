from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from servicewire.types import token_name


class ServiceWireError(Exception):
    """Represent a base class for all ServiceWire-specific failures.

    Catch this type when you want to handle any ServiceWire error path without
    matching each concrete exception class individually.
    """


class ServiceWireNotRegisteredError(ServiceWireError, LookupError):
    """Signal that a required service has no matching descriptor.

    Raised by ``get_required_service`` and ``get_required_keyed_service``, and
    while resolving the declared dependencies of another service.

    Typical fixes include registering the token (and key, for keyed services)
    on the ``ServiceCollection`` before building the provider, or building with
    ``validate_on_build=True`` to catch missing dependencies early.
    """

    def __init__(self, token: Any, key: Any = None) -> None:
        self.token = token
        self.key = key
        if key is None:
            msg = f"No provider found for token: {token!r} is not registered."
        else:
            msg = (
                f"No provider found for keyed service: token={token!r}, key={key!r} "
                "is not registered."
            )
        super().__init__(msg)


class ServiceWireDisposedProviderError(ServiceWireError):
    """Signal use of a provider after ``dispose`` was called.

    Raised by every resolution method, ``is_service`` and ``create_scope`` once
    the provider (root or scope) has been disposed.

    Typical fix is creating a new scope, or keeping the root provider alive for
    as long as resolution is needed.
    """

    def __init__(self) -> None:
        super().__init__("Provider disposed.")


class ServiceWireInvalidDescriptorError(ServiceWireError):
    """Signal a descriptor that does not describe exactly one way to build a service.

    Raised by ``ServiceCollection.register`` and the named registration methods
    when a descriptor declares none (or more than one) of implementation,
    factory and value, or when a token without an explicit implementation is
    not a class. Also raised at resolution time when an implementation cannot
    be allocated without constructor arguments.
    """

    def __init__(self, token: Any, reason: str) -> None:
        self.token = token
        super().__init__(f"Invalid service descriptor for token {token!r}: {reason}")


class ServiceWireScopeViolationError(ServiceWireError):
    """Signal scoped resolution from the root provider.

    Raised when ``validate_scopes`` is enabled and either a scoped service is
    requested from the root provider, or a scoped dependency would be injected
    into a service constructed by the root provider (for example a singleton).

    Typical fixes include resolving through ``provider.create_scope()`` or
    changing the dependent service lifetime.
    """

    def __init__(self, token: Any, dependent: Any = None, *, dependent_lifetime: str = "") -> None:
        self.token = token
        self.dependent = dependent
        if dependent is None:
            msg = (
                f"Cannot resolve scoped service '{token_name(token)}' from root provider. "
                "Create a scope first."
            )
        else:
            kind = "singleton" if dependent_lifetime == "singleton" else "root"
            msg = (
                f"Cannot inject scoped service '{token_name(token)}' into {kind} service "
                f"'{token_name(dependent)}'."
            )
        super().__init__(msg)


class ServiceWireCircularStructureError(ServiceWireError):
    """Signal a broken circular-construction invariant.

    Raised when a descriptor identity is on a provider resolution stack but no
    placeholder was recorded for it. Ordinary cycles between implementation
    descriptors never raise this error: they are resolved with placeholders.
    """

    def __init__(self, token: Any, lifetime: str) -> None:
        self.token = token
        self.lifetime = lifetime
        msg = (
            f"Circular dependency detected for {lifetime} service '{token_name(token)}'. "
            "Service is in resolution stack but no partial instance found."
        )
        super().__init__(msg)


@dataclass(frozen=True, slots=True)
class MissingDependency:
    """One dependency edge that points at an unregistered token."""

    dependency: Any
    required_by: Any
    key: Any = None

    def describe(self) -> str:
        if self.key is None:
            return f"Missing dependency: {self.dependency!r} required by {self.required_by!r}"
        return (
            f"Missing dependency: {self.dependency!r} required by keyed service "
            f"{self.required_by!r} (key: {self.key!r})"
        )


class ServiceWireValidationError(ServiceWireError):
    """Signal that build-time validation found unregistered dependencies.

    Raised by ``ServiceCollection.build(validate_on_build=True)``. The error
    collects every missing dependency edge instead of stopping at the first one;
    inspect ``errors`` for the full list.
    """

    def __init__(self, errors: Sequence[MissingDependency]) -> None:
        self.errors = list(errors)
        lines = "\n".join(error.describe() for error in self.errors)
        super().__init__(f"Validation failed on build:\n{lines}")
