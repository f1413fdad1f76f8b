"""
Integration Tests

End-to-end tests that verify the complete system works together.

Run with: python -m pytest tests/test_integration.py -v
"""

import asyncio
import pytest
from respkv.protocol.types import Array, BulkString, Integer, SimpleString


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end integration tests."""

    async def test_complete_workflow(self, server, client_factory):
        """Test a complete user workflow."""
        async with client_factory() as client:
            # Create multiple keys
            assert await client.send_command("SET", "user:1", "alice") == SimpleString("OK")
            assert await client.send_command("SET", "user:2", "bob") == SimpleString("OK")
            assert await client.send_command("SET", "user:3", "charlie") == SimpleString("OK")

            # Read all keys
            assert await client.send_command("GET", "user:1") == BulkString(b"alice")
            assert await client.send_command("GET", "user:2") == BulkString(b"bob")
            assert await client.send_command("GET", "user:3") == BulkString(b"charlie")

            # Check existence
            assert await client.send_command("EXISTS", "user:1", "user:99") == Integer(1)

            # Update a key
            assert await client.send_command("SET", "user:1", "alice_updated") == SimpleString("OK")
            assert await client.send_command("GET", "user:1") == BulkString(b"alice_updated")

            # Delete a key
            assert await client.send_command("DEL", "user:2") == Integer(1)
            assert await client.send_command("GET", "user:2") == BulkString(None)
            assert await client.send_command("EXISTS", "user:2") == Integer(0)

            # List what is left
            reply = await client.send_command("KEYS", "user:*")
            assert sorted(item.data for item in reply.items) == [b"user:1", b"user:3"]

    async def test_expire_zero_through_server(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("SET", "k", "v")
            assert await client.send_command("EXPIRE", "k", "0") == Integer(1)
            assert await client.send_command("GET", "k") == BulkString(None)
            assert await client.send_command("TTL", "k") == Integer(-2)

    @pytest.mark.slow
    async def test_ttl_through_server(self, server, client_factory):
        """Test a key disappears once its TTL has passed."""
        async with client_factory() as client:
            await client.send_command("SET", "tempkey", "tempvalue")
            assert await client.send_command("EXPIRE", "tempkey", "1") == Integer(1)
            assert await client.send_command("GET", "tempkey") == BulkString(b"tempvalue")

            await asyncio.sleep(1.2)

            assert await client.send_command("GET", "tempkey") == BulkString(None)
            assert await client.send_command("EXISTS", "tempkey") == Integer(0)
            assert await client.send_command("KEYS", "*") == Array(())

    async def test_ttl_visible_across_connections(self, server, client_factory):
        async with client_factory() as first, client_factory() as second:
            await first.send_command("SET", "k", "v")
            await first.send_command("EXPIRE", "k", "50")
            assert await second.send_command("TTL", "k") in (Integer(49), Integer(50))

            await second.send_command("SET", "k", "v2")
            assert await first.send_command("TTL", "k") == Integer(-1)

    async def test_protocol_error_mid_session(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("SET", "k", "v")

            await client.send_raw(b"*1\r\n$x\r\n")
            assert await client.read_raw_reply() == b"-ERR Protocol error\r\n"

            assert await client.send_command("GET", "k") == BulkString(b"v")
