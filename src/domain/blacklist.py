"""Sender blacklist filter."""

from typing import Iterable, Optional


def is_blacklisted(sender_address: str, rules: Iterable[str]) -> Optional[str]:
    """
    Return the first rule contained in sender_address, or None.

    Matching is case-sensitive substring containment, in configured order.
    Empty rules are ignored (they would otherwise match every sender).

    Example:
        >>> is_blacklisted("user@achu.soup", ["spam.biz", "achu.soup"])
        'achu.soup'
    """
    for rule in rules:
        if not rule:
            continue
        if rule in sender_address:
            return rule
    return None
