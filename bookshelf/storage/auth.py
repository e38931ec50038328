"""Principal tracking for the remote backend.

Sign-in itself (passwords, magic links, OAuth) belongs to the identity
provider; this module only records who the current principal is.
"""

import logging
from typing import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)

AuthListener = Callable[[str, "Principal | None"], None]


class Principal(BaseModel):
    """An authenticated user on whose behalf remote calls run."""

    id: str
    email: str = ""


class AuthSession:
    """The signed-in principal of one client.

    Args:
        principal: Principal to start signed in as, if any.
    """

    def __init__(self, principal: Principal | None = None) -> None:
        self._principal = principal
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> Principal | None:
        return self._principal

    async def get_user(self) -> Principal | None:
        """Return the current principal, or None when signed out."""
        return self._principal

    def sign_in(self, principal: Principal) -> None:
        self._principal = principal
        logger.info("Signed in as %s", principal.email or principal.id)
        self._notify("SIGNED_IN")

    def sign_out(self) -> None:
        self._principal = None
        logger.info("Signed out")
        self._notify("SIGNED_OUT")

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Call ``listener(event, principal)`` on every sign-in and sign-out."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._principal)
            except Exception:
                logger.exception("Auth state listener failed on %s", event)
