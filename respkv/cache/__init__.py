"""Cache module for RESP-KV."""

from .store import TTL_NO_EXPIRY, TTL_NO_KEY, Entry, KVStore

__all__ = ["Entry", "KVStore", "TTL_NO_EXPIRY", "TTL_NO_KEY"]
