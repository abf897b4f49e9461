from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity: a user id plus the bearer token issued for it."""

    user_id: str | None = None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id) and bool(self.token)

    @property
    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


ANONYMOUS = Principal()
