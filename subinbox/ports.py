"""The remote command port the core talks to, and its concrete backend."""

from __future__ import annotations

from typing import List, Optional, Protocol

from .command_bridge import HttpCommandBridge
from .local_store import LocalStore
from .models import Alias, ErrorRecord, Preferences, RemoteItem, Session


class RemoteCommandPort(Protocol):
    """Everything the core needs from the outside world; every call may fail."""

    async def authenticate(self, account: str, secret: str) -> Session: ...

    async def deauthenticate(self) -> None: ...

    async def fetch_remote_items(self) -> List[RemoteItem]: ...

    async def send_remote_item(self, destination: str, subject: str, body: str) -> None: ...

    async def persist_session(self, session: Session) -> None: ...

    async def load_session(self) -> Optional[Session]: ...

    async def persist_secret(self, secret: str) -> None: ...

    async def load_secret(self) -> Optional[str]: ...

    async def persist_alias_list(self, aliases: List[Alias]) -> None: ...

    async def load_alias_list(self) -> List[Alias]: ...

    async def persist_preferences(self, preferences: Preferences) -> None: ...

    async def load_preferences(self) -> Optional[Preferences]: ...

    async def log_error(self, record: ErrorRecord) -> None: ...


class CommandBackend:
    """Remote calls go over the HTTP bridge; durable state stays in the local store."""

    def __init__(self, bridge: HttpCommandBridge, store: LocalStore) -> None:
        self.bridge = bridge
        self.store = store

    async def authenticate(self, account: str, secret: str) -> Session:
        return await self.bridge.authenticate(account, secret)

    async def deauthenticate(self) -> None:
        try:
            await self.bridge.deauthenticate()
        finally:
            await self.store.forget_session()

    async def fetch_remote_items(self) -> List[RemoteItem]:
        return await self.bridge.fetch_remote_items()

    async def send_remote_item(self, destination: str, subject: str, body: str) -> None:
        await self.bridge.send_remote_item(destination, subject, body)

    async def persist_session(self, session: Session) -> None:
        await self.store.persist_session(session)
        self.bridge.token = session.token

    async def load_session(self) -> Optional[Session]:
        session = await self.store.load_session()
        if session is not None:
            self.bridge.token = session.token
        return session

    async def persist_secret(self, secret: str) -> None:
        await self.store.persist_secret(secret)

    async def load_secret(self) -> Optional[str]:
        return await self.store.load_secret()

    async def persist_alias_list(self, aliases: List[Alias]) -> None:
        await self.store.persist_alias_list(aliases)

    async def load_alias_list(self) -> List[Alias]:
        return await self.store.load_alias_list()

    async def persist_preferences(self, preferences: Preferences) -> None:
        await self.store.persist_preferences(preferences)

    async def load_preferences(self) -> Optional[Preferences]:
        return await self.store.load_preferences()

    async def log_error(self, record: ErrorRecord) -> None:
        await self.store.log_error(record)
