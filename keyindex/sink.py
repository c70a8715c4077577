"""Destination store for key -> login associations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import redis

from keyindex.config import RedisConfig

logger = logging.getLogger("keyindex.sink")


class KeySink(ABC):
    @abstractmethod
    def append(self, key: str, value: str) -> None:
        """Append ``value`` to the list stored under ``key``."""


class RedisKeySink(KeySink):
    """Stores each public key as a Redis list of the logins publishing it."""

    def __init__(self, client: redis.Redis, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_config(cls, config: RedisConfig) -> "RedisKeySink":
        client = redis.Redis(
            host=config.host,
            port=config.port,
            password=config.password or None,
            db=config.db,
            decode_responses=True,
        )
        return cls(client, key_prefix=config.key_prefix)

    def append(self, key: str, value: str) -> None:
        self._client.rpush(self._prefix + key, value)

    def lookup(self, key: str) -> list[str]:
        """Return every login recorded for ``key``, oldest first."""
        return list(self._client.lrange(self._prefix + key, 0, -1))

    def close(self) -> None:
        self._client.close()
