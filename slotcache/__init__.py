"""
SlotCache: Bounded In-Memory Key-Value Cache

A single-node key-value cache that places keys in a hashed slot space,
evicts the oldest insertion on overflow and recovers its state from an
append-only operation log. Served over raw TCP with Python asyncio.
"""

__version__ = "1.0.0"
