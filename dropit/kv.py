"""
Key-value store abstraction for messages and the legacy content value.

Supports an in-memory store for tests/local runs, a Redis-backed store, and
an Upstash/Vercel-KV compatible REST store for hosted deployments. Remote
stores are wrapped so a failed call is served from the in-memory store.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import redis
import requests

from dropit.config import Settings
from dropit.errors import KvError

logger = logging.getLogger(__name__)


class KvStore(Protocol):
    """Minimal key-value interface over JSON-serialisable values."""

    name: str

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryKvStore:
    """Dict-backed store owned by a single application instance."""

    name: str = "memory"
    items: dict = field(default_factory=dict)

    def get(self, key: str) -> Optional[Any]:
        value = self.items.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so stored values behave like the remote stores.
        self.items[key] = json.loads(json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass
class RedisKvStore:
    """Redis-backed store; values are stored as JSON strings."""

    url: str
    name: str = "redis"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.client.set(key, json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self.client.delete(key)


@dataclass
class RestKvStore:
    """
    Upstash-compatible REST store (the protocol behind Vercel KV).

    Each command is POSTed as a JSON array, e.g. ``["SET", key, value]``, and
    the reply is read from ``{"result": ...}``.
    """

    url: str
    token: str
    name: str = "kv-rest"
    timeout: float = 10.0

    def _command(self, *args: str) -> Any:
        response = requests.post(
            self.url.rstrip("/"),
            json=list(args),
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            raise KvError(f"KV command {args[0]} failed: {payload['error']}")
        return payload.get("result")

    def get(self, key: str) -> Optional[Any]:
        raw = self._command("GET", key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._command("SET", key, json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self._command("DEL", key)


@dataclass
class FallbackKvStore:
    """
    Try the primary store once; on any failure serve the call from the
    fallback store. There is no retry and no resync between the two.
    """

    primary: KvStore
    fallback: KvStore

    @property
    def name(self) -> str:
        return self.primary.name

    def get(self, key: str) -> Optional[Any]:
        try:
            return self.primary.get(key)
        except (redis.RedisError, requests.RequestException, KvError, ValueError) as exc:
            logger.warning("KV get error for %s, using %s: %s", key, self.fallback.name, exc)
        return self.fallback.get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            self.primary.set(key, value)
            return
        except (redis.RedisError, requests.RequestException, KvError, ValueError) as exc:
            logger.warning("KV set error for %s, using %s: %s", key, self.fallback.name, exc)
        self.fallback.set(key, value)

    def delete(self, key: str) -> None:
        try:
            self.primary.delete(key)
            return
        except (redis.RedisError, requests.RequestException, KvError, ValueError) as exc:
            logger.warning("KV delete error for %s, using %s: %s", key, self.fallback.name, exc)
        self.fallback.delete(key)


def build_kv_store(settings: Settings) -> KvStore:
    if settings.kv_rest_api_url and settings.kv_rest_api_token:
        primary: KvStore = RestKvStore(
            url=settings.kv_rest_api_url, token=settings.kv_rest_api_token
        )
    elif settings.kv_url:
        primary = RedisKvStore(url=settings.kv_url)
    else:
        logger.info("KV credentials not configured, using in-memory storage")
        return InMemoryKvStore()
    return FallbackKvStore(primary=primary, fallback=InMemoryKvStore())
