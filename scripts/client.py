#!/usr/bin/env python3
"""
Interactive Test Client for SlotCache

A simple command-line client for manually testing the SlotCache server.

Usage:
    python scripts/client.py                  # Connect to localhost:7171
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 8080      # Connect to specific port
    python scripts/client.py GET mykey        # Send one command and exit

Commands:
    PUT <key> <int>   - Store an integer value
    GET <key>         - Retrieve a value
    DEL <key>         - Delete a key (DELETE also accepted)
    STATS             - Show server statistics
    QUIT              - Close connection
    help              - Show this help
    exit              - Exit client
"""

import argparse
import json
import socket
import sys

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class SlotCacheClient:
    """Blocking line-oriented TCP client for SlotCache."""

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket = None
        self._buffer = b''

    def connect(self) -> bool:
        """Connect to the server."""
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self._buffer = b''
            return True
        except OSError as e:
            print(f"Connection error: {e}")
            return False

    def disconnect(self):
        """Disconnect from the server."""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None

    def quit(self):
        """Send QUIT. The server closes the connection without replying."""
        if self.socket:
            try:
                self.socket.sendall(b"QUIT\n")
            except OSError:
                pass
        self.disconnect()

    def send_command(self, command: str) -> str:
        """Send a command and return its single response line."""
        if not self.socket:
            return "ERROR: Not connected"

        try:
            self.socket.sendall(command.rstrip('\r\n').encode('utf-8') + b'\n')

            # Responses are newline-terminated; keep any surplus for the next read
            while b'\n' not in self._buffer:
                chunk = self.socket.recv(4096)
                if not chunk:
                    self.disconnect()
                    return "ERROR: Connection closed by server"
                self._buffer += chunk

            line, self._buffer = self._buffer.split(b'\n', 1)
            return line.decode('utf-8')

        except socket.timeout:
            return "ERROR: Request timed out"
        except OSError as e:
            self.disconnect()
            return f"ERROR: {e}"

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def format_response(command: str, response: str) -> str:
    """Pretty-print STATS replies, pass everything else through."""
    if command.split()[:1] == ["STATS"] and response.startswith("OK {"):
        try:
            return "OK\n" + json.dumps(json.loads(response[3:]), indent=2, sort_keys=True)
        except ValueError:
            return response
    return response


def print_help():
    """Print help message."""
    print("""
SlotCache Commands:
-------------------
  PUT <key> <int>           Store an integer under a key
  GET <key>                 Retrieve the value for a key
  DEL <key>                 Delete a key (also: DELETE)
  STATS                     Show cache and server statistics
  QUIT                      Close connection and exit

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the server
  status                    Show connection status

Examples:
---------
  PUT visits 42             Store 42 under "visits"
  GET visits                Get value for "visits"
  DEL visits                Delete "visits"
""")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Interactive test client for SlotCache"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=7171,
        help="Server port (default: 7171)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Send a single command and exit instead of starting the prompt"
    )
    return parser.parse_args(argv)


def run_once(client: SlotCacheClient, command: str) -> int:
    """Send one command, print the reply, return a process exit code."""
    response = client.send_command(command)
    print(format_response(command.upper(), response))
    client.quit()
    return 0 if response.startswith("OK") else 1


def main(argv=None):
    args = parse_args(argv)
    client = SlotCacheClient(args.host, args.port, args.timeout)

    if not client.connect():
        print("Failed to connect. Is the server running?")
        print(f"  Try: python -m slotcache.server --port {args.port}")
        sys.exit(1)

    if args.command:
        sys.exit(run_once(client, " ".join(args.command)))

    print("SlotCache Client")
    print("================")
    print(f"Connected to {args.host}:{args.port}. Type 'help' for commands.\n")

    try:
        while True:
            try:
                command = input(">>> ").strip()
            except EOFError:
                print("\nGoodbye!")
                break

            if not command:
                continue

            lower_cmd = command.lower()

            if lower_cmd == "help":
                print_help()
                continue

            if lower_cmd in ("exit", "quit"):
                client.quit()
                print("Goodbye!")
                break

            if lower_cmd == "reconnect":
                client.disconnect()
                print("Reconnected!" if client.connect() else "Reconnection failed.")
                continue

            if lower_cmd == "status":
                status = "Connected" if client.socket else "Disconnected"
                print(f"Status: {status}")
                print(f"Server: {args.host}:{args.port}")
                continue

            response = client.send_command(command)
            print(format_response(command.upper(), response))

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
