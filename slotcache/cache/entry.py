"""Cache entry shared by the eviction list and the slot table."""

from dataclasses import dataclass


@dataclass(eq=False)
class Entry:
    """
    A resident key-value pair.

    The same Entry object is held by both EvictionList and SlotTable, so
    identity (not equality) is what ties the two structures together.
    """
    key: str
    value: int
