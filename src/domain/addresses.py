"""
Address normalization for recipient matching and header insertion.

All functions here are pure and total: malformed input is normalized
best-effort and never rejected.
"""

import re
from typing import Optional, Tuple

# Whitespace plus the C0 control range and DEL
_UNSAFE_CHARS = re.compile(r'[\s\x00-\x1f\x7f]+')
_PLUS_SUFFIX = re.compile(r'\+.*?@')


def normalize(address: str) -> str:
    """
    Strip whitespace and control characters anywhere in an address.

    Args:
        address: Raw address as found in an event or header

    Returns:
        str: The address with no whitespace or control characters

    Example:
        >>> normalize(" user@\\r\\nexample.com ")
        'user@example.com'
    """
    return _UNSAFE_CHARS.sub('', address).strip()


def match_key(address: str, allow_plus_sign: bool = True) -> str:
    """
    Compute the lookup key of an address for the mapping table.

    Args:
        address: Original recipient address
        allow_plus_sign: Fold "user+tag@domain" onto "user@domain"

    Returns:
        str: Lower-cased, normalized key
    """
    key = normalize(address).lower()
    if allow_plus_sign:
        key = _PLUS_SUFFIX.sub('@', key, count=1)
    return key


def split_key(key: str) -> Tuple[str, Optional[str]]:
    """
    Split a key at its last "@" into user and domain.

    The domain keeps its leading "@" so it can be used as a table key
    directly. A key without "@" has no domain.
    """
    pos = key.rfind('@')
    if pos == -1:
        return key, None
    return key[:pos], key[pos:]


def local_part(address: str) -> str:
    """Return the part of an address before the first "@"."""
    return address.split('@', 1)[0]


def domain_part(address: str) -> str:
    """Return the part of an address after the last "@" (empty if none)."""
    return address.rpartition('@')[2] if '@' in address else ''
