"""
Protocol Command and Response Definitions

This module defines the data structures for commands and responses. A
Command is both what the parser produces and what the CommandSequencer
executes.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CommandType(Enum):
    """Enumeration of supported command types."""
    PUT = auto()
    GET = auto()
    DELETE = auto()
    STATS = auto()
    QUIT = auto()
    UNKNOWN = auto()


MUTATING_COMMANDS = frozenset({CommandType.PUT, CommandType.DELETE})


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    ERROR = "ERROR"


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command (PUT, GET, DELETE, STATS, QUIT, UNKNOWN)
        key: The key for the operation (empty for STATS and QUIT)
        value: The integer value for PUT operations (None otherwise)
        raw: The original raw command string
    """
    type: CommandType
    key: str = ""
    value: Optional[int] = None
    raw: str = ""

    def __post_init__(self):
        """Validate command after initialization."""
        self.key = str(self.key) if self.key else ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type == CommandType.UNKNOWN:
            return False
        if self.type in (CommandType.QUIT, CommandType.STATS):
            return True
        if self.type in (CommandType.GET, CommandType.DELETE):
            return bool(self.key)
        if self.type == CommandType.PUT:
            return bool(self.key) and isinstance(self.value, int)
        return False

    @property
    def is_mutation(self) -> bool:
        """Check if the command changes cache state."""
        return self.type in MUTATING_COMMANDS


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: OK or ERROR
        message: Response message or error description
        value: The value returned (for GET operations)
    """
    status: ResponseStatus
    message: str = ""
    value: Optional[int] = None

    @classmethod
    def ok(cls, message: str = "", value: Optional[int] = None) -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK, message=message, value=value)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, message=message)

    @classmethod
    def stored(cls) -> "Response":
        """Create a 'stored' response for PUT operations."""
        return cls.ok(message="stored")

    @classmethod
    def deleted(cls) -> "Response":
        """Create a 'deleted' response for DEL operations."""
        return cls.ok(message="deleted")

    @classmethod
    def key_not_found(cls) -> "Response":
        """Create a 'key not found' error response."""
        return cls.error(message="key not found")

    @classmethod
    def ring_full(cls) -> "Response":
        """Create a 'ring full' error response for PUT operations."""
        return cls.error(message="ring full")

    @classmethod
    def internal_error(cls) -> "Response":
        """Create an error response for engine faults."""
        return cls.error(message="internal error")

    @classmethod
    def value_response(cls, value: int) -> "Response":
        """Create a GET response with a value."""
        return cls.ok(value=value)
