"""
RESP-KV Exceptions Module

Defines the exception hierarchy used by the codec, the dispatcher and the
storage engine.

    KVError
    ├── ProtocolError           malformed frame, reported as -ERR Protocol error
    │   ├── InvalidRespTypeError
    │   ├── InvalidIntegerError
    │   ├── InvalidBulkStringLengthError
    │   ├── InvalidArrayLengthError
    │   └── IncompleteFrameError  more bytes may complete the frame
    │       ├── IncompleteDataError
    │       ├── IncompleteBulkStringError
    │       └── IncompleteArrayError
    ├── CommandError            bad command, reported as an error reply
    └── StorageFault            allocation failure inside the store
"""


class KVError(Exception):
    """Base exception for all RESP-KV errors."""


class ProtocolError(KVError):
    """
    Raised when a frame cannot be decoded.

    The client only ever sees the generic protocol error reply; the
    subclass and message are for logging.

    Attributes:
        resume_at: Offset just past the offending header line when the
                   error sits on the header of a top-level value, so the
                   caller can skip that line and decode what follows.
                   None when the frame boundary is unknown.
    """

    reply = 'ERR Protocol error'
    resume_at = None


class InvalidRespTypeError(ProtocolError):
    """The leading type byte is not one of + - : $ *."""


class InvalidIntegerError(ProtocolError):
    """An integer or length line is not a base-10 number."""


class InvalidBulkStringLengthError(ProtocolError):
    """Bulk string length is below -1 or disagrees with the payload."""


class InvalidArrayLengthError(ProtocolError):
    """Array count is negative."""


class IncompleteFrameError(ProtocolError):
    """The buffer ends before the frame does."""


class IncompleteDataError(IncompleteFrameError):
    """A line or a bulk string terminator is missing its CRLF."""


class IncompleteBulkStringError(IncompleteFrameError):
    """Fewer payload bytes than the declared bulk string length."""


class IncompleteArrayError(IncompleteFrameError):
    """An array element is missing or only partially present."""


class CommandError(KVError):
    """
    Raised when a request is well-formed RESP but not a valid command.

    Attributes:
        message: Full error reply text, including the ERR prefix
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @classmethod
    def wrong_arity(cls, name: str) -> "CommandError":
        return cls(f"ERR wrong number of arguments for '{name.lower()}' command")

    @classmethod
    def not_an_integer(cls) -> "CommandError":
        return cls("ERR value is not an integer or out of range")


class StorageFault(KVError):
    """The store could not allocate memory for an entry."""
