"""Network module for RESP-KV."""

from .tcp_server import KVServer, run_server

__all__ = ["KVServer", "run_server"]
