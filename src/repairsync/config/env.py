"""Environment variable loaders for configuration.

Blank values are treated the same as unset ones everywhere, so an empty line
in a ``.env`` file never masks a default.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def optional_env_var(name: str) -> str | None:
    """Return the stripped value of ``name`` or ``None`` when unset or blank."""

    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip() or None


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Read several required variables at once, reporting every missing name."""

    found = {name: optional_env_var(name) for name in names}
    missing = sorted(name for name, value in found.items() if value is None)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return {name: value for name, value in found.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def _env_number[T: (int, float)](
    name: str,
    default: T,
    minimum: T,
    parse: Callable[[str], T],
    noun: str,
) -> T:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        value = parse(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be {noun}, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def env_int(name: str, default: int, *, minimum: int = 0) -> int:
    return _env_number(name, default, minimum, int, "an integer")


def env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    return _env_number(name, default, minimum, float, "a number")


def env_flag(name: str, *, default: bool = False) -> bool:
    raw = optional_env_var(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")
