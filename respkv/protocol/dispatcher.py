"""
Command Dispatcher Module

This module maps decoded requests onto KVStore operations and builds the
reply values.

Commands:
    PING                      -> +PONG
    SET <key> <value>         -> +OK
    GET <key>                 -> $<len> value | $-1
    DEL <key> [key ...]       -> :<deleted count>
    EXISTS <key> [key ...]    -> :<existing count>
    EXPIRE <key> <seconds>    -> :1 | :0
    TTL <key>                 -> :<seconds> | :-1 | :-2
    PERSIST <key>             -> :1 | :0
    KEYS <pattern>            -> *<n> bulk strings
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Sequence

from ..cache.store import KVStore
from ..exceptions import CommandError
from . import resp
from .types import Array, BulkString, CommandType, RespValue

_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")


@dataclass(frozen=True)
class CommandSpec:
    """
    Arity rule for a command.

    Attributes:
        arity: Number of arguments after the command name
        exact: True if ``arity`` is exact, False if it is a minimum
    """
    arity: int
    exact: bool = True

    def accepts(self, count: int) -> bool:
        return count == self.arity if self.exact else count >= self.arity


COMMAND_SPECS: Dict[CommandType, CommandSpec] = {
    CommandType.PING: CommandSpec(0),
    CommandType.SET: CommandSpec(2),
    CommandType.GET: CommandSpec(1),
    CommandType.DEL: CommandSpec(1, exact=False),
    CommandType.EXISTS: CommandSpec(1, exact=False),
    CommandType.EXPIRE: CommandSpec(2),
    CommandType.TTL: CommandSpec(1),
    CommandType.PERSIST: CommandSpec(1),
    CommandType.KEYS: CommandSpec(1),
}


class CommandDispatcher:
    """
    Executes RESP requests against a KVStore.

    The dispatcher holds no state of its own, so one instance can serve
    every connection.

    Usage:
        dispatcher = CommandDispatcher(store)
        reply = dispatcher.dispatch(resp.command("SET", "k", "v"))
    """

    def __init__(self, store: KVStore):
        self.store = store
        self._handlers: Dict[CommandType, Callable[[Sequence[RespValue]], RespValue]] = {
            CommandType.PING: self._ping,
            CommandType.SET: self._set,
            CommandType.GET: self._get,
            CommandType.DEL: self._del,
            CommandType.EXISTS: self._exists,
            CommandType.EXPIRE: self._expire,
            CommandType.TTL: self._ttl,
            CommandType.PERSIST: self._persist,
            CommandType.KEYS: self._keys,
        }

    def dispatch(self, request: RespValue) -> RespValue:
        """
        Execute a decoded request.

        Args:
            request: Should be an Array whose first element is the
                     command name as a bulk string

        Returns:
            The reply value. Invalid requests produce an Error reply;
            this method does not raise CommandError.
        """
        if not isinstance(request, Array):
            return resp.error("ERR expected array")
        if not request.items:
            return resp.error("ERR empty command")

        name = request.items[0]
        if not isinstance(name, BulkString):
            return resp.error("ERR invalid command format")
        if name.data is None:
            return resp.error("ERR invalid command")

        return self.execute(name.data, request.items[1:])

    def execute(self, name: bytes, args: Sequence[RespValue]) -> RespValue:
        """
        Execute a command by name.

        Args:
            name: Command name, matched case-insensitively
            args: Arguments after the command name
        """
        command = CommandType.lookup(name)
        if command is None:
            return resp.error("ERR unknown command")

        try:
            if not COMMAND_SPECS[command].accepts(len(args)):
                raise CommandError.wrong_arity(command.value)
            return self._handlers[command](args)
        except CommandError as exc:
            return resp.error(exc.message)

    def _ping(self, args: Sequence[RespValue]) -> RespValue:
        return resp.pong()

    def _set(self, args: Sequence[RespValue]) -> RespValue:
        key = _require_bulk(args[0], "key")
        value = _require_bulk(args[1], "value")
        self.store.set(key, value)
        return resp.ok()

    def _get(self, args: Sequence[RespValue]) -> RespValue:
        value = self.store.get(_require_bulk(args[0], "key"))
        return resp.bulk(value) if value is not None else resp.null_bulk()

    def _del(self, args: Sequence[RespValue]) -> RespValue:
        deleted = sum(1 for key in _well_formed(args) if self.store.delete(key))
        return resp.integer(deleted)

    def _exists(self, args: Sequence[RespValue]) -> RespValue:
        existing = sum(1 for key in _well_formed(args) if self.store.exists(key))
        return resp.integer(existing)

    def _expire(self, args: Sequence[RespValue]) -> RespValue:
        key = _require_bulk(args[0], "key")
        seconds = _require_bulk(args[1], "seconds")
        if not _INTEGER_RE.fullmatch(seconds):
            raise CommandError.not_an_integer()
        seconds = int(seconds)
        if not resp.INT64_MIN <= seconds <= resp.INT64_MAX:
            raise CommandError.not_an_integer()
        return resp.integer(1 if self.store.expire(key, seconds) else 0)

    def _ttl(self, args: Sequence[RespValue]) -> RespValue:
        return resp.integer(self.store.ttl(_require_bulk(args[0], "key")))

    def _persist(self, args: Sequence[RespValue]) -> RespValue:
        return resp.integer(1 if self.store.persist(_require_bulk(args[0], "key")) else 0)

    def _keys(self, args: Sequence[RespValue]) -> RespValue:
        pattern = _require_bulk(args[0], "pattern")
        return resp.array_of(self.store.keys(pattern))


def _require_bulk(arg: RespValue, role: str) -> bytes:
    """Extract the payload of a non-null bulk string argument."""
    if not isinstance(arg, BulkString):
        raise CommandError(f"ERR invalid {role} type")
    if arg.data is None:
        raise CommandError(f"ERR invalid {role}")
    return arg.data


def _well_formed(args: Sequence[RespValue]):
    """Yield the payloads of non-null bulk string arguments, skipping the rest."""
    for arg in args:
        if isinstance(arg, BulkString) and arg.data is not None:
            yield arg.data
