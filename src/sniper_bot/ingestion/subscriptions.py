"""
Bounded set of token addresses whose trade stream we follow.

Insertion-ordered; once full, adding a new address evicts the oldest one.
The caller is responsible for telling the feed about the eviction.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Iterator, Optional

DEFAULT_CAPACITY = 100


class SubscriptionSet:
    """
    FIFO-evicting set of contract addresses.

    Usage:
        subs = SubscriptionSet(capacity=2)
        subs.add("a")          # None
        subs.add("b")          # None
        subs.add("c")          # "a" (evicted)
        subs.add("b")          # None, no reordering
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: "OrderedDict[str, None]" = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, address: str) -> Optional[str]:
        """
        Track an address.

        Returns:
            The evicted address if the set was full, else None.
            Re-adding a tracked address is a no-op and returns None.
        """
        if address in self._items:
            return None

        evicted = None
        if len(self._items) >= self._capacity:
            evicted, _ = self._items.popitem(last=False)

        self._items[address] = None
        return evicted

    def discard(self, address: str) -> bool:
        """Stop tracking an address. Returns True if it was tracked."""
        if address in self._items:
            del self._items[address]
            return True
        return False

    def snapshot(self) -> list[str]:
        """Addresses in insertion order (oldest first)."""
        return list(self._items)

    def __contains__(self, address: object) -> bool:
        return address in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))
