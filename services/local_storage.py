"""
Key-value persistence used as the local mirror of remote data.

Values are JSON documents stored under ``<prefix><identity>_<key>`` so each
identity (or the anonymous session) has its own namespace.
"""

import json
from typing import Any, Callable, List, Optional

from core.config import settings
from core.logging import get_logger

logger = get_logger(__name__)


class LocalStorage:
    """JSON read/write/query by key on top of a redis client."""

    def __init__(self, client, identity: Optional[str] = None, prefix: str = None):
        self.client = client
        self.identity = identity or "anonymous"
        self.prefix = prefix if prefix is not None else settings.LOCAL_STORAGE_PREFIX

    def _key(self, key: str) -> str:
        return f"{self.prefix}{self.identity}_{key}"

    async def read(self, key: str, default: Any = None) -> Any:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable local value", key=key)
            return default

    async def write(self, key: str, value: Any) -> None:
        await self.client.set(self._key(key), json.dumps(value, default=str))

    async def query(self, key: str, predicate: Callable[[Any], bool]) -> List[Any]:
        items = await self.read(key, [])
        if not isinstance(items, list):
            return []
        return [item for item in items if predicate(item)]
