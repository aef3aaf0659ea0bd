"""Identify items that reached the account through one of its aliases."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence

from .models import Alias, RemoteItem
from .utils import split_address

logger = logging.getLogger(__name__)


def is_alias_of(address: str, base_address: str) -> bool:
    """True if ``address`` is ``base_address``'s local part plus a non-empty suffix.

    Same domain, compared case-insensitively. Never raises; malformed input
    simply does not match.
    """
    address_parts = split_address(address)
    base_parts = split_address(base_address)
    if address_parts is None or base_parts is None:
        return False
    local, domain = (part.lower() for part in address_parts)
    base_local, base_domain = (part.lower() for part in base_parts)
    if domain != base_domain:
        return False
    return local.startswith(base_local) and len(local) > len(base_local)


def _alias_addresses(aliases: Iterable[Alias]) -> set[str]:
    return {alias.address.lower() for alias in aliases}


def _mark(item: RemoteItem, forwarded: bool) -> RemoteItem:
    if forwarded:
        return replace(item, forwarded=True, original_alias=item.recipient)
    return replace(item, forwarded=False, original_alias=None)


def identify_forwarded(items: Iterable[RemoteItem], aliases: Iterable[Alias]) -> list[RemoteItem]:
    """Flag items whose recipient is a registered alias."""
    addresses = _alias_addresses(aliases)
    return [_mark(item, item.recipient.lower() in addresses) for item in items]


def identify_forwarded_by_account(items: Iterable[RemoteItem], account: str | None) -> list[RemoteItem]:
    """Flag items whose recipient looks like ``account`` plus a suffix."""
    if not account:
        return [_mark(item, False) for item in items]
    return [_mark(item, is_alias_of(item.recipient, account)) for item in items]


def is_item_forwarded(item: RemoteItem, aliases: Iterable[Alias]) -> bool:
    return item.recipient.lower() in _alias_addresses(aliases)


def alias_for_item(item: RemoteItem, aliases: Iterable[Alias]) -> Alias | None:
    recipient = item.recipient.lower()
    for alias in aliases:
        if alias.address.lower() == recipient:
            return alias
    return None


def group_items_by_alias(
    items: Iterable[RemoteItem], aliases: Sequence[Alias]
) -> dict[str, list[RemoteItem]]:
    """Bucket items under the alias address they were sent to.

    Every alias gets a key, even with no items; items addressed elsewhere are
    left out.
    """
    grouped: dict[str, list[RemoteItem]] = {alias.address: [] for alias in aliases}
    for item in items:
        alias = alias_for_item(item, aliases)
        if alias is not None:
            grouped[alias.address].append(item)
    return grouped
