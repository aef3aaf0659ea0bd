"""Locally known aliases and the workflow that creates new ones."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional, Protocol

from .exceptions import DuplicateEntryError, NotAuthenticatedError, NotFoundError, ValidationError
from .models import Alias, AliasStatus
from .utils import SuffixOptions, generate_suffix_with_options, now_ms, split_address, validate_suffix

logger = logging.getLogger(__name__)

CREATION_SUBJECT = "Create New Email"
CREATION_BODY = "If you see this message,this email has been created"


class AliasStore(Protocol):
    async def persist_alias_list(self, aliases: list[Alias]) -> None: ...

    async def load_alias_list(self) -> list[Alias]: ...


class MailSender(Protocol):
    async def send_remote_item(self, destination: str, subject: str, body: str) -> None: ...


class AliasRegistry:
    """Passive store of aliases, persisted before every in-memory change."""

    def __init__(self, store: AliasStore) -> None:
        self._store = store
        self._items: tuple[Alias, ...] = ()
        self.loading = False
        self.error: Optional[str] = None

    @property
    def items(self) -> tuple[Alias, ...]:
        return self._items

    def snapshot(self) -> tuple[Alias, ...]:
        return self._items

    def get(self, address: str) -> Optional[Alias]:
        for alias in self._items:
            if alias.address == address:
                return alias
        return None

    async def add(self, alias: Alias) -> Alias:
        if self.get(alias.address) is not None:
            self.error = f"Alias {alias.address} already exists"
            raise DuplicateEntryError(self.error)
        await self._commit(self._items + (alias,))
        logger.info("Registered alias %s (%s)", alias.address, alias.status.value)
        return alias

    async def update(self, address: str, changes: Mapping[str, Any]) -> Alias:
        """Apply ``changes`` to the alias at ``address``; status goes through ``with_status``."""
        index = self._index(address)
        if "address" in changes and changes["address"] != address:
            raise ValidationError("Alias address cannot be changed")

        current = self._items[index]
        fields = {key: value for key, value in changes.items() if key not in ("address", "status")}
        updated = replace(current, **fields)
        if "status" in changes:
            updated = updated.with_status(changes["status"])

        items = list(self._items)
        items[index] = updated
        await self._commit(tuple(items))
        logger.info("Updated alias %s", address)
        return updated

    async def delete(self, address: str) -> None:
        index = self._index(address)
        await self._commit(self._items[:index] + self._items[index + 1:])
        logger.info("Deleted alias %s", address)

    async def refresh(self) -> tuple[Alias, ...]:
        """Reload from storage, replacing the in-memory list."""
        self.loading = True
        self.error = None
        try:
            loaded = await self._store.load_alias_list()
        except Exception as exc:
            self.error = str(exc) or "Failed to load aliases"
            logger.error("Failed to load aliases: %s", exc)
            raise
        finally:
            self.loading = False
        self._items = tuple(loaded or ())
        logger.debug("Loaded %d aliases", len(self._items))
        return self._items

    def _index(self, address: str) -> int:
        for index, alias in enumerate(self._items):
            if alias.address == address:
                return index
        self.error = f"Alias {address} does not exist"
        raise NotFoundError(self.error)

    async def _commit(self, items: tuple[Alias, ...]) -> None:
        try:
            await self._store.persist_alias_list(list(items))
        except Exception as exc:
            self.error = str(exc) or "Failed to save aliases"
            raise
        self._items = items
        self.error = None


class AliasCreator:
    """Generate a suffix, register the alias and send the mail that activates it."""

    def __init__(
        self,
        registry: AliasRegistry,
        sender: MailSender,
        account: Callable[[], Optional[str]],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._registry = registry
        self._sender = sender
        self._account = account
        self._clock = clock
        self.creating: Optional[Alias] = None
        self.error: Optional[str] = None

    @property
    def is_creating(self) -> bool:
        return self.creating is not None and self.creating.status is AliasStatus.CREATING

    @staticmethod
    def build_address(account: str, suffix: str) -> str:
        parts = split_address(account)
        if parts is None:
            raise ValidationError(f"Invalid account address: {account}")
        local, domain = parts
        return f"{local}{suffix}@{domain}"

    async def create(self, options: SuffixOptions | None = None, suffix: str | None = None) -> Alias:
        """Create and activate a new alias; a failed send leaves it ``failed``."""
        account = self._account()
        if not account:
            raise NotAuthenticatedError("Not logged in; cannot create an alias")

        suffix = suffix or generate_suffix_with_options(options or SuffixOptions())
        if not validate_suffix(suffix):
            raise ValidationError(f"Invalid alias suffix: {suffix!r}")

        self.error = None
        alias = Alias(
            address=self.build_address(account, suffix),
            suffix=suffix,
            created_at=self._clock(),
            status=AliasStatus.CREATING,
        )
        self.creating = await self._registry.add(alias)

        try:
            await self._sender.send_remote_item(alias.address, CREATION_SUBJECT, CREATION_BODY)
        except Exception as exc:
            self.error = str(exc) or "Failed to create alias"
            logger.error("Creating alias %s failed: %s", alias.address, exc)
            try:
                self.creating = await self._registry.update(alias.address, {"status": AliasStatus.FAILED})
            except Exception:
                logger.exception("Could not record failed status for %s", alias.address)
            raise

        self.creating = await self._registry.update(alias.address, {"status": AliasStatus.ACTIVE})
        logger.info("Alias %s is active", alias.address)
        return self.creating
