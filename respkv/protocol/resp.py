"""
RESP Codec Module

This module turns raw bytes into RESP values and RESP values back into
bytes.

Wire format (one leading type byte per value):

    +<text>\\r\\n                 SimpleString
    -<text>\\r\\n                 Error
    :<integer>\\r\\n              Integer
    $<length>\\r\\n<bytes>\\r\\n    BulkString ($-1\\r\\n is the null bulk string)
    *<count>\\r\\n<values...>     Array

The codec is stateless. Each decode call consumes exactly one top-level
value from the start of the buffer; keeping partial input around until
more bytes arrive is left to the caller.
"""

import re
from typing import Iterable, Optional, Tuple, Union

from ..exceptions import (
    IncompleteArrayError,
    IncompleteBulkStringError,
    IncompleteDataError,
    IncompleteFrameError,
    InvalidArrayLengthError,
    InvalidBulkStringLengthError,
    InvalidIntegerError,
    InvalidRespTypeError,
    ProtocolError,
)
from .types import Array, BulkString, Error, Integer, RespValue, SimpleString

CRLF = b"\r\n"

SIMPLE_STRING = ord("+")
ERROR = ord("-")
INTEGER = ord(":")
BULK_STRING = ord("$")
ARRAY = ord("*")

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Guards the recursive array decoder against frames like *1\r\n*1\r\n...
MAX_NESTING_DEPTH = 32

_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")

BytesLike = Union[bytes, bytearray, memoryview]


class RespParser:
    """
    Decoder and encoder for RESP frames.

    Usage:
        parser = RespParser()
        value = parser.decode(b"*1\\r\\n$4\\r\\nPING\\r\\n")
        data = parser.encode(SimpleString("PONG"))   # b"+PONG\\r\\n"
    """

    def decode(self, data: BytesLike) -> Optional[RespValue]:
        """
        Decode the first RESP value in ``data``.

        Args:
            data: Raw bytes received from a client

        Returns:
            The decoded value, or None if ``data`` is empty (nothing to
            process yet).

        Raises:
            ProtocolError: One of its subclasses, see respkv.exceptions.
                IncompleteFrameError subclasses mean that appending more
                bytes may make the frame decodable.

        Examples:
            >>> RespParser().decode(b":42\\r\\n")
            Integer(value=42)
            >>> RespParser().decode(b"") is None
            True
        """
        value, _ = self.decode_frame(data)
        return value

    def decode_frame(self, data: BytesLike) -> Tuple[Optional[RespValue], int]:
        """
        Decode the first RESP value and report how many bytes it used.

        A bytearray is parsed in place; only the decoded payloads are
        copied out of it, so re-trying a large partial frame after every
        read costs the size of its headers rather than the whole buffer.

        Returns:
            (value, consumed). For an empty buffer this is (None, 0).
        """
        if isinstance(data, memoryview):
            data = data.tobytes()
        if not data:
            return None, 0
        return self._parse_value(data, 0, 0)

    def _parse_value(self, data: bytes, pos: int, depth: int) -> Tuple[RespValue, int]:
        type_byte = data[pos]
        pos += 1

        if type_byte == SIMPLE_STRING:
            line, pos = self._read_line(data, pos)
            return SimpleString(_to_text(line)), pos
        if type_byte == ERROR:
            line, pos = self._read_line(data, pos)
            return Error(_to_text(line)), pos
        if type_byte == INTEGER:
            value, pos = self._read_int(data, pos, depth)
            return Integer(value), pos
        if type_byte == BULK_STRING:
            return self._parse_bulk_string(data, pos, depth)
        if type_byte == ARRAY:
            return self._parse_array(data, pos, depth)

        raise InvalidRespTypeError(f"unknown type byte {bytes([type_byte])!r}")

    def _read_int(self, data: bytes, pos: int, depth: int) -> Tuple[int, int]:
        """Read an integer header line; the error carries its end at depth 0."""
        line, pos = self._read_line(data, pos)
        try:
            return _parse_int(line), pos
        except InvalidIntegerError as exc:
            _at_header(exc, pos, depth)
            raise

    def _parse_bulk_string(self, data: bytes, pos: int, depth: int) -> Tuple[BulkString, int]:
        length, pos = self._read_int(data, pos, depth)

        if length == -1:
            return BulkString(None), pos
        if length < 0:
            raise _at_header(
                InvalidBulkStringLengthError(f"invalid bulk string length {length}"),
                pos, depth,
            )

        end = pos + length
        if end > len(data):
            raise IncompleteBulkStringError(
                f"expected {length} bytes, have {len(data) - pos}"
            )
        if end + 2 > len(data):
            raise IncompleteDataError("bulk string is missing its CRLF")
        if data[end:end + 2] != CRLF:
            raise InvalidBulkStringLengthError(
                f"bulk string of declared length {length} is not followed by CRLF"
            )

        # Released at once so the caller's bytearray can still be resized.
        with memoryview(data) as view:
            payload = bytes(view[pos:end])
        return BulkString(payload), end + 2

    def _parse_array(self, data: bytes, pos: int, depth: int) -> Tuple[Array, int]:
        count, pos = self._read_int(data, pos, depth)

        if count < 0:
            raise _at_header(
                InvalidArrayLengthError(f"invalid array length {count}"), pos, depth
            )
        if depth >= MAX_NESTING_DEPTH:
            raise ProtocolError("arrays nested too deeply")

        items = []
        for index in range(count):
            if pos >= len(data):
                raise IncompleteArrayError(f"array has {index} of {count} elements")
            try:
                item, pos = self._parse_value(data, pos, depth + 1)
            except IncompleteFrameError as exc:
                raise IncompleteArrayError(
                    f"array element {index} of {count} is incomplete"
                ) from exc
            items.append(item)

        return Array(tuple(items)), pos

    @staticmethod
    def _read_line(data: bytes, pos: int) -> Tuple[bytes, int]:
        """Return the bytes up to the next CRLF and the position after it."""
        end = data.find(CRLF, pos)
        if end == -1:
            raise IncompleteDataError("line is missing its CRLF")
        return data[pos:end], end + 2

    def encode(self, value) -> bytes:
        """
        Encode a RESP value into wire bytes.

        Array elements may also be plain bytes or str, which are encoded
        as bulk strings (this is how key listings are sent).

        Raises:
            TypeError: If ``value`` is not a RESP value.
            ValueError: If a simple string or error contains CR or LF.
        """
        parts = []
        self._encode_into(value, parts)
        return b"".join(parts)

    def _encode_into(self, value, parts: list) -> None:
        if isinstance(value, SimpleString):
            parts.append(b"+" + _to_line(value.text) + CRLF)
        elif isinstance(value, Error):
            parts.append(b"-" + _to_line(value.text) + CRLF)
        elif isinstance(value, Integer):
            parts.append(b":%d\r\n" % value.value)
        elif isinstance(value, BulkString):
            if value.data is None:
                parts.append(b"$-1\r\n")
            else:
                parts.append(b"$%d\r\n" % len(value.data))
                parts.append(bytes(value.data))
                parts.append(CRLF)
        elif isinstance(value, Array):
            parts.append(b"*%d\r\n" % len(value.items))
            for item in value.items:
                if isinstance(item, (bytes, bytearray, memoryview, str)):
                    item = BulkString(_to_bytes(item))
                self._encode_into(item, parts)
        else:
            raise TypeError(f"cannot encode {type(value).__name__} as RESP")


def _parse_int(line: bytes) -> int:
    if not _INTEGER_RE.fullmatch(line):
        raise InvalidIntegerError(f"not an integer: {line[:32]!r}")
    value = int(line)
    if not INT64_MIN <= value <= INT64_MAX:
        raise InvalidIntegerError(f"integer out of range: {line[:32]!r}")
    return value


def _at_header(exc: ProtocolError, line_end: int, depth: int) -> ProtocolError:
    # Inside an array the rest of the array is still on the wire, so only a
    # top-level header line is a safe place to resume.
    if depth == 0:
        exc.resume_at = line_end
    return exc


def _to_text(line: bytes) -> str:
    return line.decode("utf-8", errors="surrogateescape")


def _to_line(text: str) -> bytes:
    if "\r" in text or "\n" in text:
        raise ValueError("simple strings and errors cannot contain CR or LF")
    return text.encode("utf-8", errors="surrogateescape")


def _to_bytes(data: Union[BytesLike, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


# ============================================================================
# Reply constructors
# ============================================================================

def ok() -> SimpleString:
    return SimpleString("OK")


def pong() -> SimpleString:
    return SimpleString("PONG")


def error(message: str) -> Error:
    return Error(message)


def integer(value: int) -> Integer:
    return Integer(int(value))


def bulk(data: Union[BytesLike, str]) -> BulkString:
    return BulkString(_to_bytes(data))


def null_bulk() -> BulkString:
    return BulkString(None)


def array_of(items: Iterable[Union[BytesLike, str]]) -> Array:
    """Build an array of bulk strings, e.g. for a KEYS reply."""
    return Array(tuple(bulk(item) for item in items))


def command(*parts: Union[BytesLike, str]) -> Array:
    """
    Build a request array of bulk strings.

    >>> RespParser().encode(command("GET", "k"))
    b'*2\\r\\n$3\\r\\nGET\\r\\n$1\\r\\nk\\r\\n'
    """
    return array_of(parts)


_default_parser = RespParser()
decode = _default_parser.decode
decode_frame = _default_parser.decode_frame
encode = _default_parser.encode
