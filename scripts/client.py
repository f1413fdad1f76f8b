#!/usr/bin/env python3
"""
Interactive Test Client for RESP-KV

A simple command-line client for manually testing the RESP-KV server.
Input lines are split shell-style, sent as RESP arrays of bulk strings, and
replies are printed in a redis-cli like format.

Usage:
    python scripts/client.py                  # Connect to localhost:6379
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 7000      # Connect to specific port

Commands:
    PING                      - Check the connection
    SET <key> <value>         - Store a key-value pair
    GET <key>                 - Retrieve a value
    DEL <key> [key ...]       - Delete keys
    EXISTS <key> [key ...]    - Count existing keys
    EXPIRE <key> <seconds>    - Set a TTL
    TTL <key>                 - Show remaining TTL
    PERSIST <key>             - Remove a TTL
    KEYS <pattern>            - List keys (*, prefix*, *suffix)
    help                      - Show this help
    exit                      - Exit client
"""

import argparse
import os
import shlex
import socket
import sys

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from respkv.exceptions import IncompleteFrameError, ProtocolError  # noqa: E402
from respkv.protocol import resp  # noqa: E402
from respkv.protocol.types import Array, BulkString, Error, Integer, SimpleString  # noqa: E402


class RespClient:
    """Simple blocking TCP client for RESP-KV."""

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

    def execute(self, *parts: str):
        """Send one command and return the decoded reply."""
        if not self.socket:
            raise ConnectionError("not connected")

        self.socket.sendall(resp.encode(resp.command(*parts)))

        while True:
            try:
                reply, consumed = resp.decode_frame(self._buffer)
            except IncompleteFrameError:
                reply = None
            if reply is not None:
                self._buffer = self._buffer[consumed:]
                return reply

            chunk = self.socket.recv(4096)
            if not chunk:
                raise ConnectionError("connection closed by server")
            self._buffer += chunk

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def format_reply(reply, indent: int = 0) -> str:
    """Render a reply the way redis-cli does."""
    if isinstance(reply, SimpleString):
        return reply.text
    if isinstance(reply, Error):
        return f"(error) {reply.text}"
    if isinstance(reply, Integer):
        return f"(integer) {reply.value}"
    if isinstance(reply, BulkString):
        if reply.data is None:
            return "(nil)"
        return '"' + reply.data.decode('utf-8', errors='backslashreplace') + '"'
    if isinstance(reply, Array):
        if not reply.items:
            return "(empty array)"
        pad = " " * indent
        lines = []
        for i, item in enumerate(reply.items, 1):
            prefix = f"{i}) "
            lines.append(pad + prefix + format_reply(item, indent + len(prefix)).lstrip())
        return "\n".join(lines)
    raise TypeError(f"unexpected reply {reply!r}")


def print_help():
    """Print help message."""
    print("""
RESP-KV Commands:
-----------------
  PING                      Check the connection
  SET <key> <value>         Store a key-value pair (clears any TTL)
  GET <key>                 Retrieve the value for a key
  DEL <key> [key ...]       Delete keys, prints how many were deleted
  EXISTS <key> [key ...]    Count how many keys exist
  EXPIRE <key> <seconds>    Expire a key after some seconds
  TTL <key>                 Remaining seconds, -1 no TTL, -2 no key
  PERSIST <key>             Remove a key's TTL
  KEYS <pattern>            List keys matching *, prefix* or *suffix

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the server
  status                    Show connection status

Examples:
---------
  SET greeting "hello world"
  EXPIRE greeting 60
  KEYS greet*
""")


def main():
    parser = argparse.ArgumentParser(
        description="Interactive test client for RESP-KV"
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
        default=6379,
        help="Server port (default: 6379)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )

    args = parser.parse_args()

    print("RESP-KV Client")
    print("==============")
    print(f"Connecting to {args.host}:{args.port}...")

    client = RespClient(args.host, args.port, args.timeout)

    if not client.connect():
        print("Failed to connect. Is the server running?")
        print(f"  Try: python -m respkv.server --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                line = input(">>> ").strip()

                if not line:
                    continue

                lower_cmd = line.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                if lower_cmd == "reconnect":
                    client.disconnect()
                    if client.connect():
                        print("Reconnected!")
                    else:
                        print("Reconnection failed.")
                    continue

                if lower_cmd == "status":
                    status = "Connected" if client.socket else "Disconnected"
                    print(f"Status: {status}")
                    print(f"Server: {args.host}:{args.port}")
                    continue

                try:
                    parts = shlex.split(line)
                except ValueError as e:
                    print(f"(client error) {e}")
                    continue

                try:
                    print(format_reply(client.execute(*parts)))
                except socket.timeout:
                    print("(client error) request timed out")
                except (ConnectionError, ProtocolError, OSError) as e:
                    print(f"(client error) {e}")

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
