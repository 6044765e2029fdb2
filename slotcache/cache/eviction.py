"""
Eviction List Module

Bounded, insertion-ordered list of resident entries.

Ordering:
- The oldest surviving insertion is at the BEGINNING (head)
- The newest insertion is at the END (tail)
- Re-inserting a resident key moves it to the end
- Reads never reorder; only the head is ever evicted
"""

from collections import OrderedDict
from typing import Optional, Dict, Any, List

from .entry import Entry


class EvictionList:
    """
    Insertion-order eviction list with O(1) point update and removal.

    Python's OrderedDict is the key index and the ordered sequence at once:
    popitem(last=False) removes the head, plain assignment appends at the tail.

    Usage:
        evictions = EvictionList(capacity=2)
        evictions.upsert(Entry("a", 1))
        evictions.upsert(Entry("b", 2))
        evicted = evictions.upsert(Entry("c", 3))  # Entry("a", 1)

    Attributes:
        capacity: Maximum number of resident entries
    """

    def __init__(self, capacity: int):
        """
        Initialize the eviction list.

        Args:
            capacity: Maximum number of entries (must be positive)

        Raises:
            ValueError: If capacity is not positive
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: "OrderedDict[str, Entry]" = OrderedDict()

    def upsert(self, entry: Entry) -> Optional[Entry]:
        """
        Insert an entry as the newest, replacing any resident entry for its key.

        Args:
            entry: The entry to insert

        Returns:
            The evicted entry if the insert pushed the list over capacity,
            None otherwise

        Time Complexity: O(1)
        """
        self._entries.pop(entry.key, None)
        self._entries[entry.key] = entry

        if len(self._entries) > self.capacity:
            _, evicted = self._entries.popitem(last=False)
            return evicted
        return None

    def remove(self, key: str) -> Optional[Entry]:
        """
        Remove the entry for a key.

        Returns:
            The removed entry, or None if the key was not resident

        Time Complexity: O(1)
        """
        return self._entries.pop(key, None)

    def get(self, key: str) -> Optional[Entry]:
        """
        Look up the entry for a key without changing its position.

        Time Complexity: O(1)
        """
        return self._entries.get(key)

    def contains(self, key: str) -> bool:
        """Check if a key is resident."""
        return key in self._entries

    def oldest(self) -> Optional[Entry]:
        """Get the entry that will be evicted next, or None if empty."""
        if not self._entries:
            return None
        return next(iter(self._entries.values()))

    def newest(self) -> Optional[Entry]:
        """Get the most recently inserted entry, or None if empty."""
        if not self._entries:
            return None
        return next(reversed(self._entries.values()))

    def size(self) -> int:
        """Get current number of resident entries."""
        return len(self._entries)

    def is_full(self) -> bool:
        """Check if the list is at capacity."""
        return len(self._entries) >= self.capacity

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    def keys(self) -> List[str]:
        """
        Get all resident keys in eviction order.

        Returns:
            List of keys from oldest (next to be evicted) to newest
        """
        return list(self._entries.keys())

    def entries(self) -> List[Entry]:
        """Get all resident entries, oldest first."""
        return list(self._entries.values())

    def get_stats(self) -> Dict[str, Any]:
        """Get eviction list statistics."""
        oldest = self.oldest()
        newest = self.newest()
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "utilization": len(self._entries) / self.capacity,
            "oldest_key": oldest.key if oldest else None,
            "newest_key": newest.key if newest else None,
        }
