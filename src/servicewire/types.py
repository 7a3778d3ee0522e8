from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from servicewire.provider import ServiceProvider

T = TypeVar("T")

Token: TypeAlias = Hashable
"""An opaque identity used both as registry key and resolution request key.

Classes, strings and plain ``object()`` sentinels are all valid tokens.
"""

ServiceKey: TypeAlias = Hashable
"""An additional key that selects one keyed registration of a token."""

ServiceFactory: TypeAlias = Callable[["ServiceProvider"], Any | Awaitable[Any]]
"""A factory called with the resolving provider; may return an awaitable."""


@runtime_checkable
class SupportsInit(Protocol):
    """Services exposing an initialization hook run once after construction.

    The provider looks the hook up by name and calls it only when it is callable.
    """

    def on_init(self) -> Any: ...  # noqa: D102


@runtime_checkable
class SupportsDestroy(Protocol):
    """Services exposing a destroy hook run when the owning provider is disposed.

    Looked up by name like ``SupportsInit.on_init``.
    """

    def on_destroy(self) -> Any: ...  # noqa: D102


def token_name(token: Token) -> str:
    """Return a display name for a token."""
    if isinstance(token, str):
        return token
    if isinstance(token, type):
        return token.__qualname__
    return repr(token)
