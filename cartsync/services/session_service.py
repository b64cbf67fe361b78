# cartsync/services/session_service.py
from typing import Callable

from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

SessionListener = Callable[[str | None], None]


class AuthSession:
    """
    Identity of one client session as seen by the cart core: the current
    owner id or None, plus notifications when it changes. Issuing and
    verifying credentials happens elsewhere.
    """

    def __init__(self, owner_id: str | None = None):
        self._owner_id = owner_id
        self._listeners: list[SessionListener] = []

    @property
    def current_owner(self) -> str | None:
        return self._owner_id

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self, owner_id: str) -> None:
        logger.info(f"Session signed in as {owner_id}")
        self._set(owner_id)

    def sign_out(self) -> None:
        logger.info(f"Session signed out ({self._owner_id})")
        self._set(None)

    def _set(self, owner_id: str | None) -> None:
        if owner_id == self._owner_id:
            return
        self._owner_id = owner_id
        for listener in list(self._listeners):
            listener(owner_id)
