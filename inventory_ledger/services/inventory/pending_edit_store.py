import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, NewType, Optional
from redis.exceptions import RedisError

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import StoreError
from inventory_ledger.core.redis import RedisClient, redis_client
from inventory_ledger.schemas.inventory.count_session import PendingEdit

logger = logging.getLogger(__name__)

CountItemId = NewType("CountItemId", int)


class PendingEditStore(ABC):
    """Unsaved count item edits, keyed by session and then by count item id."""

    @abstractmethod
    async def get_edits(self, session_id: int) -> Dict[CountItemId, PendingEdit]:
        ...

    @abstractmethod
    async def put_edit(self, session_id: int, item_id: CountItemId, edit: PendingEdit) -> None:
        ...

    @abstractmethod
    async def remove_edit(self, session_id: int, item_id: CountItemId) -> None:
        ...

    @abstractmethod
    async def discard(self, session_id: int) -> None:
        ...

    async def get_edit(self, session_id: int, item_id: CountItemId) -> Optional[PendingEdit]:
        return (await self.get_edits(session_id)).get(item_id)


class InMemoryPendingEditStore(PendingEditStore):
    """Process local store, suitable for a single API worker and tests."""

    def __init__(self):
        self._edits: Dict[int, Dict[CountItemId, PendingEdit]] = {}
        self._lock = asyncio.Lock()

    async def get_edits(self, session_id: int) -> Dict[CountItemId, PendingEdit]:
        async with self._lock:
            return {item_id: edit.model_copy() for item_id, edit in self._edits.get(session_id, {}).items()}

    async def put_edit(self, session_id: int, item_id: CountItemId, edit: PendingEdit) -> None:
        async with self._lock:
            self._edits.setdefault(session_id, {})[CountItemId(item_id)] = edit.model_copy()

    async def remove_edit(self, session_id: int, item_id: CountItemId) -> None:
        async with self._lock:
            edits = self._edits.get(session_id)
            if edits is not None:
                edits.pop(CountItemId(item_id), None)
                if not edits:
                    del self._edits[session_id]

    async def discard(self, session_id: int) -> None:
        async with self._lock:
            self._edits.pop(session_id, None)


class RedisPendingEditStore(PendingEditStore):
    """One Redis hash per session so edits survive API restarts and are shared by workers."""

    def __init__(self, client: Optional[RedisClient] = None, ttl_seconds: Optional[int] = None):
        self.client = client or redis_client
        self.ttl_seconds = ttl_seconds or settings.PENDING_EDIT_TTL_SECONDS

    @staticmethod
    def _key(session_id: int) -> str:
        return f"count_session:{session_id}:pending_edits"

    async def get_edits(self, session_id: int) -> Dict[CountItemId, PendingEdit]:
        try:
            raw = await self.client.hgetall(self._key(session_id))
        except RedisError as e:
            logger.error(f"❌ Could not read pending edits for session {session_id}: {str(e)}")
            raise StoreError("Pending edit store unavailable")
        return {
            CountItemId(int(item_id)): PendingEdit(**json.loads(value))
            for item_id, value in raw.items()
        }

    async def put_edit(self, session_id: int, item_id: CountItemId, edit: PendingEdit) -> None:
        try:
            await self.client.hset(
                self._key(session_id),
                str(item_id),
                edit.model_dump_json(),
                expire=self.ttl_seconds,
            )
        except RedisError as e:
            logger.error(f"❌ Could not save pending edit for item {item_id}: {str(e)}")
            raise StoreError("Pending edit store unavailable")

    async def remove_edit(self, session_id: int, item_id: CountItemId) -> None:
        try:
            await self.client.hdel(self._key(session_id), str(item_id))
        except RedisError as e:
            logger.error(f"❌ Could not remove pending edit for item {item_id}: {str(e)}")
            raise StoreError("Pending edit store unavailable")

    async def discard(self, session_id: int) -> None:
        try:
            await self.client.delete(self._key(session_id))
        except RedisError as e:
            logger.error(f"❌ Could not discard pending edits for session {session_id}: {str(e)}")
            raise StoreError("Pending edit store unavailable")


def build_pending_edit_store(backend: Optional[str] = None) -> PendingEditStore:
    backend = backend or settings.PENDING_EDIT_BACKEND
    if backend == "redis":
        return RedisPendingEditStore()
    return InMemoryPendingEditStore()
