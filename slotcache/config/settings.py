"""
SlotCache Configuration Settings

This module contains all configuration constants for the SlotCache server.
Every value can be overridden through a SLOTCACHE_* environment variable.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("SLOTCACHE_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("SLOTCACHE_PORT", "7171"))

    # Cache settings
    CAPACITY: int = int(os.environ.get("SLOTCACHE_CAPACITY", "50"))
    SLOT_SPACE_SIZE: int = int(os.environ.get("SLOTCACHE_SLOT_SPACE_SIZE", "100"))
    SUCCESSOR_LOOKUP: bool = os.environ.get("SLOTCACHE_SUCCESSOR_LOOKUP", "false").lower() == "true"
    MAX_KEY_LENGTH: int = 256

    # Operation log settings
    LOG_PATH: str = os.environ.get("SLOTCACHE_LOG_PATH", "logs/cache_log.txt")
    FSYNC: bool = os.environ.get("SLOTCACHE_FSYNC", "true").lower() == "true"

    # Sequencer settings
    QUEUE_SIZE: int = int(os.environ.get("SLOTCACHE_QUEUE_SIZE", "10000"))  # 0 means unbounded
    SHUTDOWN_TIMEOUT: float = float(os.environ.get("SLOTCACHE_SHUTDOWN_TIMEOUT", "60"))

    # Connection settings
    READ_BUFFER_SIZE: int = 4096

    # Logging settings
    DEBUG: bool = os.environ.get("SLOTCACHE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("SLOTCACHE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
