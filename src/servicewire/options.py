from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, kw_only=True)
class BuildOptions:
    """Options applied when a ``ServiceCollection`` is built into a provider."""

    validate_scopes: bool = False
    """Reject scoped services resolved from, or injected into services of, the root provider."""

    validate_on_build: bool = False
    """Check every declared dependency for a registration before returning the provider."""
