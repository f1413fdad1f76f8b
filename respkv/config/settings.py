"""
RESP-KV Configuration Settings

This module contains all configuration constants for the RESP-KV server.
Values can be overridden through environment variables or CLI flags.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("RESPKV_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("RESPKV_PORT", "6379"))

    # Connection settings
    READ_BUFFER_SIZE: int = 4096
    MAX_FRAME_SIZE: int = int(os.environ.get("RESPKV_MAX_FRAME_SIZE", str(64 * 1024 * 1024)))
    CONNECTION_TIMEOUT: int = int(os.environ.get("RESPKV_CONNECTION_TIMEOUT", "0"))  # 0 = never

    # TTL settings
    CLEANUP_INTERVAL: int = int(os.environ.get("RESPKV_CLEANUP_INTERVAL", "60"))  # 0 = lazy only

    # Logging settings
    DEBUG: bool = os.environ.get("RESPKV_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("RESPKV_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
