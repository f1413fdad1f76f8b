"""
RESP Value Definitions

This module defines the value types that travel over the wire, in both
directions. They form a closed set: every consumer handles exactly these
five classes and raises TypeError on anything else.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class SimpleString:
    """A ``+text`` line. Must not contain CR or LF."""
    text: str


@dataclass(frozen=True)
class Error:
    """A ``-text`` line, e.g. ``ERR unknown command``."""
    text: str


@dataclass(frozen=True)
class Integer:
    """A ``:n`` line holding a signed 64-bit integer."""
    value: int


@dataclass(frozen=True)
class BulkString:
    """
    A length-prefixed byte string.

    Attributes:
        data: The payload, or None for the null bulk string ($-1).
              None and b"" are different values.
    """
    data: Optional[bytes]

    @property
    def is_null(self) -> bool:
        return self.data is None


@dataclass(frozen=True)
class Array:
    """An ordered, possibly nested, sequence of RESP values."""
    items: Tuple["RespValue", ...] = ()


RespValue = Union[SimpleString, Error, Integer, BulkString, Array]


class CommandType(Enum):
    """Enumeration of supported commands, valued by their wire name."""
    PING = "PING"
    SET = "SET"
    GET = "GET"
    DEL = "DEL"
    EXISTS = "EXISTS"
    EXPIRE = "EXPIRE"
    TTL = "TTL"
    PERSIST = "PERSIST"
    KEYS = "KEYS"

    @classmethod
    def lookup(cls, name: bytes) -> Optional["CommandType"]:
        """Case-insensitive lookup of a command name, None if unknown."""
        try:
            return cls(name.decode("ascii").upper())
        except (UnicodeDecodeError, ValueError):
            return None
