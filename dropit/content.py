"""
Shared message list and the legacy single-value clipboard content, both
persisted through a KvStore.
"""

from __future__ import annotations

import random
import string
import time
from typing import Optional

from dropit.kv import KvStore

CONTENT_KEY = "dropit:content"
MESSAGES_KEY = "dropit:messages"
DEFAULT_MAX_MESSAGES = 100

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_message_id(now_ms: Optional[int] = None) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"msg_{now_ms if now_ms is not None else _now_ms()}_{suffix}"


class ContentService:
    """
    Read-modify-write helpers over the shared keys.

    Appends rewrite the whole list under one key; concurrent writers can
    overwrite each other (last writer wins).
    """

    def __init__(self, kv: KvStore, max_messages: int = DEFAULT_MAX_MESSAGES):
        self.kv = kv
        self.max_messages = max_messages

    @property
    def storage_name(self) -> str:
        return self.kv.name

    def list_messages(self) -> list[dict]:
        messages = self.kv.get(MESSAGES_KEY) or []
        return sorted(messages, key=lambda m: m.get("timestamp", 0))

    def append_message(
        self,
        content: str,
        message_type: str = "text",
        file_data: Optional[dict] = None,
    ) -> dict:
        now = _now_ms()
        message = {
            "id": new_message_id(now),
            "type": message_type,
            "content": content,
            "timestamp": now,
        }
        if file_data is not None:
            message["fileData"] = file_data

        messages = self.kv.get(MESSAGES_KEY) or []
        messages.append(message)
        self.kv.set(MESSAGES_KEY, messages[-self.max_messages:])
        return message

    def clear_messages(self) -> None:
        self.kv.delete(MESSAGES_KEY)

    def get_content(self) -> dict:
        content = self.kv.get(CONTENT_KEY)
        if not content:
            return {"text": "", "timestamp": _now_ms()}
        return content

    def save_content(self, text: str) -> dict:
        content = {"text": text, "timestamp": _now_ms()}
        self.kv.set(CONTENT_KEY, content)
        return content

    def delete_content(self) -> None:
        self.kv.delete(CONTENT_KEY)
