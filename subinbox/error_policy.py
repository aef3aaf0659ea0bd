"""Keyword heuristics that classify failures and map them to recovery policies."""

from __future__ import annotations

import logging
from enum import Enum

from .models import RecoveryPolicy

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    NETWORK = "network"
    AUTH = "auth"
    SERVER = "server"
    VALIDATION = "validation"
    STORAGE = "storage"
    UNKNOWN = "unknown"


# Evaluated top to bottom; the first group with a matching keyword wins.
KEYWORD_GROUPS: tuple[tuple[ErrorKind, frozenset[str]], ...] = (
    (ErrorKind.NETWORK, frozenset({"network", "timeout", "connection", "dns", "fetch"})),
    (
        ErrorKind.AUTH,
        frozenset({"auth", "login", "credential", "token", "session", "unauthorized", "401"}),
    ),
    (ErrorKind.SERVER, frozenset({"server", "imap", "smtp", "500", "503"})),
    (ErrorKind.VALIDATION, frozenset({"validation", "invalid", "format", "parse"})),
    (ErrorKind.STORAGE, frozenset({"storage", "disk", "permission", "quota"})),
)

_NO_RETRY = RecoveryPolicy(should_retry=False, max_retries=0, base_delay_ms=0)

RECOVERY_POLICIES: dict[ErrorKind, RecoveryPolicy] = {
    ErrorKind.NETWORK: RecoveryPolicy(should_retry=True, max_retries=3, base_delay_ms=1000),
    ErrorKind.SERVER: RecoveryPolicy(should_retry=True, max_retries=3, base_delay_ms=2000),
    ErrorKind.STORAGE: RecoveryPolicy(should_retry=True, max_retries=2, base_delay_ms=500),
    ErrorKind.AUTH: _NO_RETRY,
    ErrorKind.VALIDATION: _NO_RETRY,
    ErrorKind.UNKNOWN: _NO_RETRY,
}


def classify_error(error: BaseException | str) -> ErrorKind:
    """Return the first kind whose keywords appear in the error message."""
    message = str(error).lower()
    for kind, keywords in KEYWORD_GROUPS:
        if any(keyword in message for keyword in keywords):
            logger.debug("Classified %r as %s", message, kind.value)
            return kind
    return ErrorKind.UNKNOWN


def recovery_policy(kind: ErrorKind) -> RecoveryPolicy:
    return RECOVERY_POLICIES.get(kind, _NO_RETRY)


def backoff_delay_ms(policy: RecoveryPolicy, attempt: int) -> int:
    """Exponential backoff; ``attempt`` starts at 0."""
    return policy.base_delay_ms * (2 ** attempt)
