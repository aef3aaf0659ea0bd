"""Authentication state, expiry checks and silent re-login."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Optional, Protocol

from .models import DEFAULT_PREFERENCES, Preferences, Session
from .utils import now_ms

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expired, please log in again"


class SessionPort(Protocol):
    async def authenticate(self, account: str, secret: str) -> Session: ...

    async def deauthenticate(self) -> None: ...

    async def persist_session(self, session: Session) -> None: ...

    async def load_session(self) -> Optional[Session]: ...

    async def persist_secret(self, secret: str) -> None: ...

    async def load_secret(self) -> Optional[str]: ...

    async def persist_preferences(self, preferences: Preferences) -> None: ...

    async def load_preferences(self) -> Optional[Preferences]: ...


class SessionManager:
    """Own the current session; nothing else mutates it.

    ``restore()`` runs unattended at startup and never raises. ``logout()``
    always ends unauthenticated, even when the backend call fails.
    """

    def __init__(
        self,
        port: SessionPort,
        clock: Callable[[], int] = now_ms,
        defaults: Preferences = DEFAULT_PREFERENCES,
    ) -> None:
        self._port = port
        self._clock = clock
        self._defaults = defaults
        self._session: Optional[Session] = None
        self.preferences: Preferences = defaults
        self.loading = False
        self.error: Optional[str] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def account(self) -> Optional[str]:
        return self._session.account if self._session else None

    async def restore(self) -> bool:
        """Restore a cached session or silently re-login; True when authenticated."""
        self.loading = True
        try:
            await self._load_preferences()

            try:
                cached = await self._port.load_session()
            except Exception as exc:
                logger.warning("Could not load cached session: %s", exc)
                cached = None

            if cached is not None and cached.is_valid(self._clock()):
                self._session = cached
                self.error = None
                logger.info("Restored session for %s", cached.account)
                return True

            if cached is None or not self.preferences.auto_login:
                self._clear()
                return False

            try:
                secret = await self._port.load_secret()
                if not secret:
                    logger.info("No cached credential; auto-login skipped")
                    self._clear()
                    return False
                await self.login(cached.account, secret, remember=True)
            except Exception as exc:
                logger.error("Auto-login failed: %s", exc)
                self._clear()
                return False
            return True
        finally:
            self.loading = False

    async def login(self, account: str, secret: str, remember: bool = False) -> Session:
        """Authenticate and persist session, credential and the auto-login choice."""
        self.loading = True
        self.error = None
        try:
            session = await self._port.authenticate(account, secret)
            await self._port.persist_session(session)
            await self._port.persist_secret(secret)
        except Exception as exc:
            self._clear(str(exc) or "Login failed")
            self.loading = False
            raise

        preferences = replace(self.preferences, auto_login=remember)
        try:
            await self._port.persist_preferences(preferences)
            self.preferences = preferences
        except Exception as exc:
            logger.error("Failed to save auto-login preference: %s", exc)

        self._session = session
        self.loading = False
        logger.info("Logged in as %s", session.account)
        return session

    async def logout(self) -> None:
        try:
            await self._port.deauthenticate()
        except Exception as exc:
            logger.error("Logout failed: %s", exc)
        self._clear()
        logger.info("Logged out")

    def validate_session(self) -> bool:
        """Compare the cached expiry with the clock; clears state when expired."""
        if self._session is None:
            return False
        if self._session.is_valid(self._clock()):
            return True
        logger.info("Session for %s expired", self._session.account)
        self._clear(SESSION_EXPIRED)
        return False

    def invalidate(self, reason: Optional[str] = None) -> None:
        """Drop the session after an auth failure elsewhere."""
        if self._session is not None:
            logger.warning("Invalidating session for %s", self._session.account)
        self._clear(reason)

    async def revoke(self, reason: Optional[str] = None) -> None:
        """Invalidate locally, then tell the port so the stored session is dropped too."""
        self.invalidate(reason)
        try:
            await self._port.deauthenticate()
        except Exception as exc:
            logger.error("Failed to revoke session: %s", exc)

    async def update_preferences(self, **changes: Any) -> Preferences:
        preferences = replace(self.preferences, **changes)
        await self._port.persist_preferences(preferences)
        self.preferences = preferences
        return preferences

    async def _load_preferences(self) -> None:
        try:
            stored = await self._port.load_preferences()
        except Exception as exc:
            logger.warning("Could not load preferences, using defaults: %s", exc)
            return
        if stored is not None:
            self.preferences = stored
            return
        try:
            await self._port.persist_preferences(self._defaults)
        except Exception as exc:
            logger.warning("Could not save default preferences: %s", exc)
        self.preferences = self._defaults

    def _clear(self, error: Optional[str] = None) -> None:
        self._session = None
        self.error = error
