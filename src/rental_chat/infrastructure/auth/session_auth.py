from __future__ import annotations

import logging

from rental_chat.application.dto.principal import ANONYMOUS, Principal

logger = logging.getLogger(__name__)


class SessionAuth:
    """Holds the signed-in session for a client process."""

    def __init__(self, principal: Principal = ANONYMOUS) -> None:
        self._principal = principal

    async def current_principal(self) -> Principal:
        return self._principal

    def sign_in(self, user_id: str, token: str) -> None:
        self._principal = Principal(user_id=user_id, token=token)
        logger.info("Signed in as %s", user_id)

    def sign_out(self) -> None:
        self._principal = ANONYMOUS
        logger.info("Signed out")
