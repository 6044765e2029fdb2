"""
Protocol Parser Module

This module handles parsing of raw protocol commands and formatting of responses.
"""

import json

from .commands import Command, CommandType, Response
from ..config.settings import settings


class ProtocolParser:
    """
    Parser for the SlotCache text protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\n
        Response: <STATUS> [DATA]\n

    Commands:
        PUT <key> <int>     -> OK stored | ERROR ring full
        GET <key>           -> OK <int> | ERROR key not found
        DEL <key>           -> OK deleted   (DELETE is accepted as an alias)
        STATS               -> OK <json>
        QUIT                -> (connection closed)

    Constraints:
        - Keys: max 256 characters, no whitespace, no commas
        - Values: signed integers
    """

    def __init__(self):
        """Initialize the parser with constraints from settings."""
        self.max_key_length = settings.MAX_KEY_LENGTH

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request string into a Command object.

        Args:
            data: Raw request string (may include trailing newline)

        Returns:
            Command object representing the parsed request.
            Returns Command with type=UNKNOWN for invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("PUT mykey 42")
            >>> cmd.type == CommandType.PUT
            True
            >>> cmd.key
            'mykey'
            >>> cmd.value
            42
        """
        raw = data.strip()
        if not raw:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        parts = raw.split()
        command_name = parts[0].upper()

        if command_name == "PUT":
            return self._parse_put(parts, raw)
        if command_name == "GET":
            return self._parse_keyed(CommandType.GET, parts, raw)
        if command_name in ("DEL", "DELETE"):
            return self._parse_keyed(CommandType.DELETE, parts, raw)
        if command_name in ("STATS", "QUIT"):
            # No arguments
            if len(parts) == 1:
                return Command(type=CommandType[command_name], raw=raw)
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.UNKNOWN, raw=raw)

    def _valid_key(self, key: str) -> bool:
        return len(key) <= self.max_key_length and ',' not in key

    def _parse_put(self, parts: list, raw: str) -> Command:
        """
        Parse a PUT command.

        Format: PUT <key> <int>
        """
        if len(parts) != 3:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        key = parts[1]
        if not self._valid_key(key):
            return Command(type=CommandType.UNKNOWN, raw=raw)

        try:
            value = int(parts[2])
        except ValueError:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.PUT, key=key, value=value, raw=raw)

    def _parse_keyed(self, command_type: CommandType, parts: list, raw: str) -> Command:
        """
        Parse a single-key command.

        Format: GET <key> | DEL <key>
        """
        if len(parts) != 2:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        key = parts[1]
        if not self._valid_key(key):
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=command_type, key=key, raw=raw)

    def format_stats(self, stats: dict) -> Response:
        """Wrap a stats dictionary in a single-line OK response."""
        return Response.ok(message=json.dumps(stats, sort_keys=True))

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Args:
            response: Response object to format

        Returns:
            Formatted response string WITH trailing newline.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.stored())
            'OK stored\\n'
            >>> parser.format_response(Response.value_response(42))
            'OK 42\\n'
            >>> parser.format_response(Response.error("key not found"))
            'ERROR key not found\\n'
        """
        prefix = response.status.value

        # If value is provided (GET), prefer it; otherwise use message
        if response.value is not None:
            body = str(response.value)
        else:
            body = response.message

        if body:
            return f"{prefix} {body}\n"
        return f"{prefix}\n"
