from __future__ import annotations

import importlib
import warnings
from typing import Any

_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)


def _load_base_settings(module_name: str) -> type[Any] | None:
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    if isinstance(base_settings, type):
        return base_settings
    return None


def _load_pydantic_v1_base() -> type[Any] | None:
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message=_PYDANTIC_V1_WARNING_PATTERN,
            category=UserWarning,
        )
        return _load_base_settings("pydantic.v1")


def settings_bases() -> tuple[type[Any], ...]:
    """Return the importable pydantic settings base classes, without duplicates."""
    bases: list[type[Any]] = []
    for candidate in (_load_base_settings("pydantic_settings"), _load_pydantic_v1_base()):
        if candidate is not None and candidate not in bases:
            bases.append(candidate)
    return tuple(bases)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return true when candidate subclasses a supported Pydantic settings base."""
    if not isinstance(candidate, type):
        return False
    return any(issubclass(candidate, base) for base in settings_bases())


__all__ = [
    "is_pydantic_settings_subclass",
    "settings_bases",
]
