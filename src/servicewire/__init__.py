from servicewire.collection import ServiceCollection
from servicewire.descriptors import Lifetime, RegistrySnapshot, ServiceDescriptor
from servicewire.exceptions import (
    MissingDependency,
    ServiceWireCircularStructureError,
    ServiceWireDisposedProviderError,
    ServiceWireError,
    ServiceWireInvalidDescriptorError,
    ServiceWireNotRegisteredError,
    ServiceWireScopeViolationError,
    ServiceWireValidationError,
)
from servicewire.graph import CircularDependency, DependencyTreeNode
from servicewire.options import BuildOptions
from servicewire.provider import ServiceProvider
from servicewire.types import SupportsDestroy, SupportsInit, Token

__all__ = [
    "BuildOptions",
    "CircularDependency",
    "DependencyTreeNode",
    "Lifetime",
    "MissingDependency",
    "RegistrySnapshot",
    "ServiceCollection",
    "ServiceDescriptor",
    "ServiceProvider",
    "ServiceWireCircularStructureError",
    "ServiceWireDisposedProviderError",
    "ServiceWireError",
    "ServiceWireInvalidDescriptorError",
    "ServiceWireNotRegisteredError",
    "ServiceWireScopeViolationError",
    "ServiceWireValidationError",
    "SupportsDestroy",
    "SupportsInit",
    "Token",
]
