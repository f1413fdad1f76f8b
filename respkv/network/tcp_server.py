"""
Async TCP Server Module

This module implements the asynchronous RESP server.

Each accepted connection is served by its own coroutine. Connections share
nothing but the KVStore, whose lock serializes their storage operations.

Per-connection flow:
    1. Append whatever bytes arrived to the connection buffer
    2. Decode as many complete frames as the buffer holds
    3. Dispatch each one and queue the encoded reply
    4. Keep any trailing partial frame for the next read
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..cache.store import KVStore
from ..config.settings import settings
from ..exceptions import IncompleteFrameError, ProtocolError, StorageFault
from ..protocol.dispatcher import CommandDispatcher
from ..protocol.resp import RespParser
from ..protocol.types import Error

logger = logging.getLogger(__name__)


class KVServer:
    """
    Asynchronous TCP server speaking RESP.

    Features:
    - Non-blocking I/O with asyncio, one task per connection
    - Frame reassembly across reads, several frames per read
    - Protocol errors answered with -ERR Protocol error, connection kept
    - Optional background sweep of expired keys

    Usage:
        server = KVServer(host='127.0.0.1', port=6379)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address
        port: Server port number
        store: The KVStore instance shared by all connections
        parser: The RespParser used to decode requests and encode replies
        dispatcher: The CommandDispatcher executing requests on the store
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            cleanup_interval: int = None,
            connection_timeout: int = None,
            max_frame_size: int = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            store: KVStore instance (creates new one if not provided)
            cleanup_interval: Seconds between expired-key sweeps, 0 disables
            connection_timeout: Idle seconds before a connection is closed, 0 disables
            max_frame_size: Largest number of bytes buffered for one frame
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else KVStore()
        self.cleanup_interval = (
            cleanup_interval if cleanup_interval is not None else settings.CLEANUP_INTERVAL
        )
        self.connection_timeout = (
            connection_timeout if connection_timeout is not None else settings.CONNECTION_TIMEOUT
        )
        self.max_frame_size = (
            max_frame_size if max_frame_size is not None else settings.MAX_FRAME_SIZE
        )
        self.parser = RespParser()
        self.dispatcher = CommandDispatcher(self.store)
        self._protocol_error = self.parser.encode(Error(ProtocolError.reply))

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self._running = False
        self._connection_count = 0
        self._active_connections = 0
        self._total_requests = 0
        self._protocol_errors = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection until it disconnects.

        Args:
            reader: StreamReader for reading from the client
            writer: StreamWriter for writing to the client
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self._active_connections += 1
        logger.debug(f"Client connected: {addr}")

        buffer = bytearray()
        try:
            while True:
                data = await self._read(reader)
                if data is None:
                    logger.debug(f"Closing idle connection: {addr}")
                    break
                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                buffer += data
                out = self.process_buffer(buffer, addr)
                if out:
                    writer.write(out)
                    await writer.drain()

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except StorageFault:
            logger.exception(f"Storage fault while serving {addr}, closing connection")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            self._active_connections -= 1
            try:
                writer.close()
                await writer.wait_closed()
            except OSError:
                pass

    async def _read(self, reader: StreamReader) -> Optional[bytes]:
        """Read the next chunk; None if the idle timeout elapsed."""
        if self.connection_timeout <= 0:
            return await reader.read(settings.READ_BUFFER_SIZE)
        try:
            return await asyncio.wait_for(
                reader.read(settings.READ_BUFFER_SIZE),
                timeout=self.connection_timeout,
            )
        except asyncio.TimeoutError:
            return None

    def process_buffer(self, buffer: bytearray, addr=None) -> bytes:
        """
        Execute every complete frame at the start of ``buffer``.

        Consumed bytes are removed from ``buffer``; a trailing partial
        frame is left in place. On a malformed frame the protocol error
        reply is queued. If the error sits on a top-level header line,
        decoding resumes after that line; otherwise the frame boundary is
        unknown and the buffer is discarded.

        Returns:
            The encoded replies, in request order
        """
        out = []
        while buffer:
            try:
                request, consumed = self.parser.decode_frame(buffer)
            except IncompleteFrameError as exc:
                if len(buffer) <= self.max_frame_size:
                    break
                logger.debug(f"Frame from {addr} exceeds {self.max_frame_size} bytes: {exc}")
                self._reject_frame(buffer, out)
                break
            except ProtocolError as exc:
                logger.debug(f"Protocol error from {addr}: {exc}")
                self._reject_frame(buffer, out, exc.resume_at)
                if exc.resume_at is None:
                    break
                continue

            del buffer[:consumed]
            self._total_requests += 1
            reply = self.dispatcher.dispatch(request)
            out.append(self.parser.encode(reply))

        return b"".join(out)

    def _reject_frame(self, buffer: bytearray, out: list, drop: int = None) -> None:
        """Queue the protocol error and drop ``drop`` bytes, or all of them."""
        self._protocol_errors += 1
        if drop is None:
            buffer.clear()
        else:
            del buffer[:drop]
        out.append(self._protocol_error)

    async def _cleanup_loop(self) -> None:
        """Periodically remove expired keys."""
        while True:
            await asyncio.sleep(self.cleanup_interval)
            removed = self.store.cleanup_expired()
            if removed:
                logger.debug(f"Removed {removed} expired keys")

    async def start(self) -> None:
        """
        Start the server and accept connections until cancelled or stopped.

        Example:
            server = KVServer(port=6379)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
        )
        self._running = True

        if self.cleanup_interval > 0:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False
            self._cancel_cleanup()

    def _cancel_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def stop(self) -> None:
        """Stop the server gracefully."""
        self._cancel_cleanup()
        if self._server is None:
            return

        self._server.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with connection and request counters and the
            store statistics.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "active_connections": self._active_connections,
            "total_requests": self._total_requests,
            "protocol_errors": self._protocol_errors,
            "store_stats": self.store.get_stats(),
        }


async def run_server(host: str = None, port: int = None) -> None:
    """
    Convenience function to create and run the server.

    Usage:
        asyncio.run(run_server(port=6379))
    """
    server = KVServer(host=host, port=port)

    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await server.stop()
