"""Composition root: wires the managers together and gates polling on the session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from .aliases import AliasCreator, AliasRegistry
from .command_bridge import HttpCommandBridge
from .config import Settings
from .exceptions import NotAuthenticatedError
from .local_store import LocalStore
from .models import Alias, Preferences, RemoteItem, Session
from .ports import CommandBackend, RemoteCommandPort
from .retry import RetryCoordinator
from .scheduler import PollingScheduler
from .session import SessionManager
from .synchronizer import ForwardingMode, RemoteListSynchronizer
from .utils import SuffixOptions, now_ms

logger = logging.getLogger(__name__)

FETCH_CONTEXT = "fetch_items"
ALIAS_CONTEXT = "load_aliases"


class MailboxApp:
    """Everything a presentation layer needs, behind one object.

    Polling only runs while a session is held: login starts it, logout, an
    expired session or an auth-classified failure stops it.
    """

    def __init__(
        self,
        port: RemoteCommandPort,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings or Settings()
        self.port = port
        self.session = SessionManager(
            port,
            clock=clock,
            defaults=Preferences(auto_refresh_interval=self.settings.refresh_interval_ms),
        )
        self.retry = RetryCoordinator(port, on_auth_failure=self._on_auth_failure, clock=clock)
        self.aliases = AliasRegistry(port)
        self.synchronizer = RemoteListSynchronizer(
            port,
            aliases=self.aliases.snapshot,
            account=lambda: self.session.account,
            mode=ForwardingMode(self.settings.forwarding_mode),
            clock=clock,
        )
        self.alias_creator = AliasCreator(
            self.aliases, port, account=lambda: self.session.account, clock=clock
        )
        self.scheduler: Optional[PollingScheduler] = None
        self._revocations: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailboxApp":
        backend = CommandBackend(HttpCommandBridge(settings), LocalStore(settings.store_db))
        return cls(backend, settings)

    @property
    def items(self) -> tuple[RemoteItem, ...]:
        return self.synchronizer.items

    @property
    def alias_list(self) -> tuple[Alias, ...]:
        return self.aliases.items

    @property
    def is_polling(self) -> bool:
        return self.scheduler is not None and self.scheduler.is_active

    async def start(self) -> bool:
        """Restore the session, load aliases and start polling if logged in."""
        authenticated = await self.session.restore()
        try:
            await self.aliases.refresh()
        except Exception as exc:
            self.retry.handle(ALIAS_CONTEXT, exc, self.aliases.refresh)
        if authenticated:
            self._start_polling()
        return authenticated

    async def login(self, account: str, secret: str, remember: bool = False) -> Session:
        session = await self.session.login(account, secret, remember=remember)
        self._start_polling()
        return session

    async def logout(self) -> None:
        self._stop_polling()
        self.retry.cancel()
        self.retry.reset_retry_count(FETCH_CONTEXT)
        await self.session.logout()
        self.synchronizer.clear()

    async def refresh_items(self) -> None:
        """One polling step; failures go to the retry coordinator and are re-raised."""
        if not self.session.validate_session():
            self._stop_polling()
            raise NotAuthenticatedError(self.session.error or "Not logged in")
        try:
            await self.synchronizer.fetch()
        except Exception as exc:
            self.retry.handle(FETCH_CONTEXT, exc, self._retry_refresh)
            raise
        self.retry.reset_retry_count(FETCH_CONTEXT)

    def mark_as_read(self, item_id: str) -> bool:
        return self.synchronizer.mark_as_read(item_id)

    async def create_alias(self, options: Optional[SuffixOptions] = None) -> Alias:
        return await self.alias_creator.create(options or self.settings.suffix_options)

    async def update_preferences(self, **changes: Any) -> Preferences:
        preferences = await self.session.update_preferences(**changes)
        if self.scheduler is not None:
            self.scheduler.interval = preferences.auto_refresh_interval / 1000
        return preferences

    async def close(self) -> None:
        """Teardown: no timer or retry may fire after this returns."""
        if self.scheduler is not None:
            self.scheduler.close()
        self.retry.close()
        if self._revocations:
            await asyncio.gather(*list(self._revocations), return_exceptions=True)
        await self.retry.flush()

    async def _retry_refresh(self) -> None:
        if self.scheduler is None or not self.session.is_authenticated:
            logger.debug("Skipping retry; polling is not running")
            return
        await self.scheduler.refresh()

    def _start_polling(self) -> None:
        if self.scheduler is None:
            self.scheduler = PollingScheduler(
                self.refresh_items,
                interval=self.session.preferences.auto_refresh_interval / 1000,
                immediate=self.settings.refresh_immediate,
            )
        else:
            self.scheduler.enable()

    def _stop_polling(self) -> None:
        if self.scheduler is not None:
            self.scheduler.disable()

    def _on_auth_failure(self) -> None:
        reason = "Authentication failed, please log in again"
        self.session.invalidate(reason)
        self._stop_polling()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; stored session not revoked")
            return
        task = loop.create_task(self.session.revoke(reason))
        self._revocations.add(task)
        task.add_done_callback(self._revocations.discard)
