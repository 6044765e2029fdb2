"""Network module for SlotCache."""
