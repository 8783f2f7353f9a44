# src/tasklog/core/identity.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable

from .ports import Unsubscribe

logger = logging.getLogger(__name__)

AuthCallback = Callable[[str | None], None]


class StaticIdentity:
    """
    Identity provider for a single configured user.

    Listeners get the current user id right away on subscribe, then every
    sign_in / sign_out transition.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = (user_id or "").strip() or None
        self._listeners: list[AuthCallback] = []

    def current_user_id(self) -> str | None:
        return self._user_id

    def on_auth_state_changed(self, callback: AuthCallback) -> Unsubscribe:
        self._listeners.append(callback)
        callback(self._user_id)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self) -> None:
        for cb in list(self._listeners):
            try:
                cb(self._user_id)
            except Exception:
                logger.exception("Auth listener failed")

    def sign_in(self, user_id: str) -> None:
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValueError("user_id is required")
        if user_id == self._user_id:
            return
        self._user_id = user_id
        logger.info("Signed in user=%s", user_id)
        self._emit()

    def sign_out(self) -> None:
        if self._user_id is None:
            return
        logger.info("Signed out user=%s", self._user_id)
        self._user_id = None
        self._emit()
