"""Merge freshly fetched remote items into the locally visible list."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from .forwarding import identify_forwarded, identify_forwarded_by_account
from .models import Alias, RemoteItem
from .utils import now_ms

logger = logging.getLogger(__name__)


class ForwardingMode(str, Enum):
    """How forwarded items are recognised."""

    ALIASES = "aliases"
    ACCOUNT_PATTERN = "account_pattern"


class ItemSource(Protocol):
    async def fetch_remote_items(self) -> list[RemoteItem]: ...


class RemoteListSynchronizer:
    """Own the visible item list and keep it in step with the remote mailbox.

    Local read marks are sticky: an item marked read here stays read after
    any later fetch, whatever the remote side reports.
    """

    def __init__(
        self,
        source: ItemSource,
        aliases: Optional[Callable[[], Sequence[Alias]]] = None,
        account: Optional[Callable[[], Optional[str]]] = None,
        mode: ForwardingMode = ForwardingMode.ALIASES,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._source = source
        self._aliases = aliases or (lambda: ())
        self._account = account or (lambda: None)
        self.mode = ForwardingMode(mode)
        self._clock = clock
        self._items: tuple[RemoteItem, ...] = ()
        self.loading = False
        self.error: Optional[str] = None
        self.last_fetch_time = 0

    @property
    def items(self) -> tuple[RemoteItem, ...]:
        return self._items

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._items if not item.is_read)

    async def fetch(self) -> tuple[RemoteItem, ...]:
        """Fetch, classify, sort newest first and merge read marks; re-raises failures."""
        self.loading = True
        self.error = None
        try:
            fetched = await self._source.fetch_remote_items()
        except Exception as exc:
            self.loading = False
            self.error = str(exc) or "Failed to fetch items"
            raise

        classified = self._classify(fetched)
        classified.sort(key=lambda item: item.timestamp, reverse=True)

        read_ids = {item.id for item in self._items if item.is_read}
        merged = tuple(
            replace(item, is_read=True) if item.id in read_ids and not item.is_read else item
            for item in classified
        )

        self._items = merged
        self.loading = False
        self.last_fetch_time = self._clock()
        logger.info(
            "Fetched %d items (%d unread, %d forwarded)",
            len(merged),
            self.unread_count,
            sum(1 for item in merged if item.forwarded),
        )
        return merged

    def mark_as_read(self, item_id: str) -> bool:
        """Mark ``item_id`` read locally; False when unknown or already read."""
        changed = False
        updated = []
        for item in self._items:
            if item.id == item_id and not item.is_read:
                item = replace(item, is_read=True)
                changed = True
            updated.append(item)
        if changed:
            self._items = tuple(updated)
            logger.debug("Marked %s as read", item_id)
        return changed

    def clear(self) -> None:
        """Forget the visible list, e.g. after logout."""
        self._items = ()
        self.error = None
        self.last_fetch_time = 0

    def _classify(self, items: Sequence[RemoteItem]) -> list[RemoteItem]:
        if self.mode is ForwardingMode.ACCOUNT_PATTERN:
            return identify_forwarded_by_account(items, self._account())
        return identify_forwarded(items, self._aliases())
