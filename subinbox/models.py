"""Typed containers shared across the sync core."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Optional

from .exceptions import InvalidTransitionError


class AliasStatus(str, Enum):
    """Lifecycle of a derived address."""

    CREATING = "creating"
    ACTIVE = "active"
    FAILED = "failed"


# creating -> active | failed; nothing ever moves back automatically
ALLOWED_TRANSITIONS = {
    AliasStatus.CREATING: frozenset({AliasStatus.ACTIVE, AliasStatus.FAILED}),
    AliasStatus.ACTIVE: frozenset(),
    AliasStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class RemoteItem:
    """A message as shown in the local inbox list."""

    id: str
    sender: str
    recipient: str
    subject: str
    body: str
    timestamp: int
    is_read: bool = False
    forwarded: bool = False
    original_alias: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RemoteItem":
        """Build an item from the backend's camelCase payload."""
        return cls(
            id=str(raw["id"]),
            sender=raw.get("from", ""),
            recipient=raw.get("to", ""),
            subject=raw.get("subject", ""),
            body=raw.get("body", ""),
            timestamp=int(raw.get("timestamp", 0)),
            is_read=bool(raw.get("isRead", False)),
            forwarded=bool(raw.get("isSubEmailForwarded", False)),
            original_alias=raw.get("originalSubEmail"),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "timestamp": self.timestamp,
            "isRead": self.is_read,
            "isSubEmailForwarded": self.forwarded,
        }
        if self.original_alias:
            payload["originalSubEmail"] = self.original_alias
        return payload


@dataclass(frozen=True)
class Alias:
    """A derived address (base local part + suffix) on the account's domain."""

    address: str
    suffix: str
    created_at: int
    status: AliasStatus = AliasStatus.CREATING

    def with_status(self, status: AliasStatus | str) -> "Alias":
        """Return a copy in ``status``; only creating->active/failed is legal."""
        target = AliasStatus(status)
        if target == self.status:
            return self
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Alias {self.address} cannot move from {self.status.value} to {target.value}"
            )
        return replace(self, status=target)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Alias":
        return cls(
            address=raw["address"],
            suffix=raw.get("suffix", ""),
            created_at=int(raw.get("createdAt", 0)),
            status=AliasStatus(raw.get("status", AliasStatus.CREATING.value)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "suffix": self.suffix,
            "createdAt": self.created_at,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class Session:
    """An authenticated session; valid while the clock is before ``expires_at``."""

    account: str
    token: str
    expires_at: int

    def is_valid(self, now: int) -> bool:
        return now < self.expires_at

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Session":
        return cls(
            account=raw.get("email") or raw["account"],
            token=raw["token"],
            expires_at=int(raw.get("expiresAt", raw.get("expires_at", 0))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.account, "token": self.token, "expiresAt": self.expires_at}


@dataclass(frozen=True)
class Preferences:
    """User preferences persisted next to the session."""

    auto_refresh_interval: int = 5000
    auto_login: bool = True

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Preferences":
        return cls(
            auto_refresh_interval=int(raw.get("autoRefreshInterval", 5000)),
            auto_login=bool(raw.get("autoLogin", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "autoRefreshInterval": self.auto_refresh_interval,
            "autoLogin": self.auto_login,
        }


DEFAULT_PREFERENCES = Preferences()


@dataclass(frozen=True)
class RecoveryPolicy:
    """Static retry rule attached to one error kind."""

    should_retry: bool
    max_retries: int
    base_delay_ms: int


@dataclass
class ErrorRecord:
    """One handled failure, as written to the error log."""

    timestamp: int
    context: str
    message: str
    kind: str
    stack: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
