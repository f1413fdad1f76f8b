"""
RESP-KV: In-Memory Key-Value Store

An in-memory key-value server with lazy TTL expiration, built with
Python asyncio and speaking the RESP wire protocol over TCP.
"""

__version__ = "1.0.0"
