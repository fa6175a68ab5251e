"""Port for the component that owns the bearer credential."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialProvider(Protocol):
    """Read accessor for the current token plus a refresh hook.

    ``current_token`` is called once per request and must never block;
    ``refresh`` resolves to ``True`` once a new credential is in place.
    """

    def current_token(self) -> str | None: ...

    async def refresh(self) -> bool: ...
