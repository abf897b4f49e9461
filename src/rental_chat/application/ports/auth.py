from __future__ import annotations

from typing import Protocol

from rental_chat.application.dto.principal import Principal


class AuthProvider(Protocol):
    """Client side: who is signed in right now."""

    async def current_principal(self) -> Principal: ...


class TokenVerifier(Protocol):
    """Server side: turn a bearer token into a principal."""

    async def verify(self, token: str) -> Principal: ...
