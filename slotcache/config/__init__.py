"""Configuration for SlotCache."""
