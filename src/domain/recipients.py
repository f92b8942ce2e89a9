"""
Recipient resolution against the forward mapping table.

Rule keys, most specific first:
- "user@domain": one mailbox
- "@domain": every mailbox of a domain
- "user": one mailbox name on every domain
- "@": catch-all, used when no other rule matches
"""

import json
import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from .addresses import match_key, split_key
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CATCH_ALL_KEY = '@'

RuleValue = Union[str, Sequence[str]]


class MappingTable:
    """
    Immutable table of forwarding rules.

    Keys are lower-cased on construction. Values are kept as tuples so the
    destination order from the configuration is preserved.
    """

    def __init__(self, rules: Mapping[str, RuleValue]):
        table: Dict[str, Tuple[str, ...]] = {}
        for raw_key, value in rules.items():
            if not isinstance(raw_key, str):
                raise ConfigurationError(f"Mapping key must be a string, got: {raw_key!r}")
            key = raw_key.strip().lower()
            if key in table:
                raise ConfigurationError(f"Duplicate mapping key after lower-casing: {raw_key!r}")
            table[key] = self._destinations(raw_key, value)
        self._rules = MappingProxyType(table)

    @staticmethod
    def _destinations(key: str, value: RuleValue) -> Tuple[str, ...]:
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return tuple(value)
        raise ConfigurationError(
            f"Mapping value for {key!r} must be an address or a list of addresses, "
            f"got: {type(value).__name__}"
        )

    @classmethod
    def from_json(cls, text: str) -> 'MappingTable':
        """
        Build a table from a JSON object.

        Raises:
            ConfigurationError: If the text is not a JSON object of rules
        """
        try:
            rules = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Forward mapping is not valid JSON: {e}")
        if not isinstance(rules, dict):
            raise ConfigurationError(
                f"Forward mapping must be a JSON object, got: {type(rules).__name__}"
            )
        return cls(rules)

    def get(self, key: str) -> Optional[Tuple[str, ...]]:
        return self._rules.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __repr__(self) -> str:
        return f"MappingTable(rules={len(self._rules)})"


def resolve_recipient(
    recipient: str,
    table: MappingTable,
    allow_plus_sign: bool = True
) -> Tuple[str, ...]:
    """
    Resolve one original recipient to its forward destinations.

    Args:
        recipient: Original recipient address
        table: Forward mapping table
        allow_plus_sign: Fold plus-suffixes before matching

    Returns:
        Tuple of destinations in table order (empty if no rule matches)
    """
    key = match_key(recipient, allow_plus_sign)
    exact = table.get(key)
    if exact is not None:
        return exact

    user, domain = split_key(key)
    if domain and domain in table:
        return table.get(domain)
    if user and user in table:
        return table.get(user)
    if CATCH_ALL_KEY in table:
        return table.get(CATCH_ALL_KEY)
    return ()


def resolve(
    original_recipients: Iterable[str],
    table: MappingTable,
    allow_plus_sign: bool = True
) -> Dict[str, Tuple[str, ...]]:
    """
    Resolve every original recipient of a message.

    Recipients without any destination are left out of the result, so an
    empty result means there is nothing to forward.

    Returns:
        Dict of original recipient -> destinations
    """
    resolved: Dict[str, Tuple[str, ...]] = {}
    for recipient in original_recipients:
        destinations = resolve_recipient(recipient, table, allow_plus_sign)
        if not destinations:
            logger.info(f"No forward rule matched recipient {recipient}")
            continue
        resolved[recipient] = destinations
    return resolved
