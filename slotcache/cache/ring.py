"""
Slot Table Module

Maps every resident key to one slot of a fixed slot space [0, LIMIT).

Placement:
- A key's home slot is sha256(key) mod LIMIT
- If the home slot is taken, probe home+1, home+2, ... (wrapping)
- If all LIMIT slots are taken, placement fails with RingFullError

Lookup comes in two flavours:
- lookup(): ring ownership. The entry at the home slot if occupied,
  otherwise the entry at the next occupied slot clockwise. This can return
  an entry for a different key than the one asked for.
- find(): exact match on the key itself.
"""

import bisect
import hashlib
from typing import Optional, Dict, Any, List, Tuple

from ..exceptions import RingFullError
from .entry import Entry


def hash_key(key: str) -> int:
    """
    Hash a key to a non-negative integer.

    Uses SHA-256 so the same key always maps to the same position,
    independent of process or PYTHONHASHSEED.
    """
    digest = hashlib.sha256(key.encode('utf-8')).digest()
    return int.from_bytes(digest[:8], byteorder='big')


class SlotTable:
    """
    Fixed-size slot space with linear probing and successor lookup.

    Internal Storage:
        _slots:    slot index -> Entry
        _occupied: sorted list of occupied slot indexes (successor search)
        _index:    key -> slot index (exact find/remove)

    Attributes:
        limit: Number of slots (LIMIT)
    """

    def __init__(self, limit: int):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit
        self._slots: Dict[int, Entry] = {}
        self._occupied: List[int] = []
        self._index: Dict[str, int] = {}

    def home_slot(self, key: str) -> int:
        """Get the slot a key hashes to before any probing."""
        return hash_key(key) % self.limit

    def can_place(self, key: str) -> bool:
        """Check whether place() would succeed for this key."""
        return key in self._index or len(self._slots) < self.limit

    def place(self, entry: Entry) -> int:
        """
        Put an entry into the slot space.

        A resident key keeps its slot and only its entry is replaced.

        Args:
            entry: The entry to place

        Returns:
            The slot index holding the entry

        Raises:
            RingFullError: If every slot is occupied by another key
        """
        slot = self._index.get(entry.key)
        if slot is not None:
            self._slots[slot] = entry
            return slot

        slot = self.home_slot(entry.key)
        for _ in range(self.limit):
            if slot not in self._slots:
                self._slots[slot] = entry
                self._index[entry.key] = slot
                bisect.insort(self._occupied, slot)
                return slot
            slot = (slot + 1) % self.limit

        raise RingFullError(entry.key, self.limit)

    def lookup(self, key: str) -> Optional[Entry]:
        """
        Resolve the entry owning a key's position on the ring.

        Returns:
            The entry at the home slot if occupied; otherwise the entry at
            the lowest occupied slot >= home, wrapping to the lowest occupied
            slot overall. None only when the table is empty.
        """
        if not self._occupied:
            return None

        home = self.home_slot(key)
        entry = self._slots.get(home)
        if entry is not None:
            return entry

        pos = bisect.bisect_left(self._occupied, home)
        if pos == len(self._occupied):
            pos = 0
        return self._slots[self._occupied[pos]]

    def find(self, key: str) -> Optional[Entry]:
        """Get the entry stored for exactly this key, or None."""
        slot = self._index.get(key)
        if slot is None:
            return None
        return self._slots[slot]

    def remove(self, key: str) -> Optional[Entry]:
        """
        Remove a key from whichever slot it was placed in.

        Returns:
            The removed entry, or None if the key is not resident
        """
        slot = self._index.pop(key, None)
        if slot is None:
            return None

        del self._occupied[bisect.bisect_left(self._occupied, slot)]
        return self._slots.pop(slot)

    def slot_of(self, key: str) -> Optional[int]:
        """Get the slot index holding a key, or None."""
        return self._index.get(key)

    def contains(self, key: str) -> bool:
        return key in self._index

    def keys(self) -> List[str]:
        """Get resident keys in slot order."""
        return [self._slots[slot].key for slot in self._occupied]

    def occupied(self) -> List[Tuple[int, Entry]]:
        """Get (slot, entry) pairs in slot order."""
        return [(slot, self._slots[slot]) for slot in self._occupied]

    def size(self) -> int:
        return len(self._slots)

    def clear(self) -> None:
        self._slots.clear()
        self._occupied.clear()
        self._index.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get slot table statistics."""
        displaced = sum(
            1 for slot, entry in self._slots.items()
            if slot != self.home_slot(entry.key)
        )
        return {
            "occupied_slots": len(self._slots),
            "slot_space_size": self.limit,
            "load_factor": len(self._slots) / self.limit,
            "displaced_keys": displaced,
        }
