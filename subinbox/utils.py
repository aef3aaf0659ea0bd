"""Utility helpers shared across modules."""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from datetime import UTC, datetime

SUFFIX_MIN_LENGTH = 1
SUFFIX_MAX_LENGTH = 20
RANDOM_SUFFIX_MIN_LENGTH = 4

NUMBERS = "0123456789"
LETTERS = "abcdefghijklmnopqrstuvwxyz"
SYMBOLS = "_-."

_SUFFIX_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_LOCAL_PART_RE = re.compile(r"^[A-Za-z0-9]+$")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def isoformat_ms(timestamp: int) -> str:
    """Render an epoch-millisecond timestamp as an ISO string in UTC."""
    return datetime.fromtimestamp(timestamp / 1000, tz=UTC).isoformat().replace("+00:00", "Z")


def split_address(address: str) -> tuple[str, str] | None:
    """Split ``local@domain``; None when there is not exactly one '@' or a side is empty."""
    if not isinstance(address, str):
        return None
    parts = address.split("@")
    if len(parts) != 2:
        return None
    local, domain = parts
    if not local or not domain:
        return None
    return local, domain


def validate_address(address: str, domain: str = "2925.com") -> bool:
    """Check ``address`` is an alphanumeric local part on ``domain``."""
    parts = split_address(address)
    if parts is None:
        return False
    local, address_domain = parts
    if address_domain != domain:
        return False
    return bool(_LOCAL_PART_RE.match(local))


def extract_local_part(address: str, domain: str = "2925.com") -> str | None:
    if not validate_address(address, domain):
        return None
    return address.split("@", 1)[0]


def extract_domain(address: str, domain: str = "2925.com") -> str | None:
    if not validate_address(address, domain):
        return None
    return address.split("@", 1)[1]


@dataclass(frozen=True)
class SuffixOptions:
    """Knobs for random alias suffixes."""

    include_letters: bool = True
    include_symbols: bool = False
    use_random_length: bool = True
    fixed_length: int = SUFFIX_MAX_LENGTH


def _alphabet(options: SuffixOptions) -> str:
    chars = ""
    if options.include_letters:
        chars += LETTERS
    chars += NUMBERS
    if options.include_symbols:
        chars += SYMBOLS
    return chars


def generate_suffix(length: int, options: SuffixOptions | None = None) -> str:
    """Random suffix of ``length`` characters drawn with ``secrets``."""
    if not isinstance(length, int) or isinstance(length, bool):
        raise ValueError("Suffix length must be an integer between 1 and 20")
    if length < SUFFIX_MIN_LENGTH or length > SUFFIX_MAX_LENGTH:
        raise ValueError("Suffix length must be an integer between 1 and 20")
    alphabet = _alphabet(options or SuffixOptions())
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_random_length_suffix(options: SuffixOptions | None = None) -> str:
    length = RANDOM_SUFFIX_MIN_LENGTH + secrets.randbelow(SUFFIX_MAX_LENGTH - RANDOM_SUFFIX_MIN_LENGTH + 1)
    return generate_suffix(length, options)


def generate_suffix_with_options(options: SuffixOptions) -> str:
    if options.use_random_length:
        return generate_random_length_suffix(options)
    return generate_suffix(options.fixed_length or SUFFIX_MAX_LENGTH, options)


def validate_suffix(suffix: str) -> bool:
    """1-20 characters of letters, digits, '_', '-' or '.'."""
    if not suffix or not isinstance(suffix, str):
        return False
    if len(suffix) > SUFFIX_MAX_LENGTH:
        return False
    return bool(_SUFFIX_RE.match(suffix))
