"""Protocol module for RESP-KV."""

from .dispatcher import CommandDispatcher
from .resp import RespParser, decode, decode_frame, encode
from .types import (
    Array,
    BulkString,
    CommandType,
    Error,
    Integer,
    RespValue,
    SimpleString,
)

__all__ = [
    "Array",
    "BulkString",
    "CommandDispatcher",
    "CommandType",
    "Error",
    "Integer",
    "RespParser",
    "RespValue",
    "SimpleString",
    "decode",
    "decode_frame",
    "encode",
]
