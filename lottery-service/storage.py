"""
Key-value persistence for users, overrides, the catalog and result history.

Values are JSON-compatible dicts; writes are last-write-wins with no multi-key
transactions. Every operation is awaited end to end.
"""
import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from errors import UserNotFound
from models import LotteryResult, Override, Platform, User

logger = logging.getLogger(__name__)

USER_PREFIX = "user:"
OVERRIDE_PREFIX = "override:"
HISTORY_PREFIX = "history:"


class KeyValueStore(ABC):
    """Async store interface: get / set / delete / list_by_prefix."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def list_by_prefix(self, prefix: str) -> list[str]:
        ...


class MemoryStore(KeyValueStore):
    """In-process store. Values are copied on the way in and out so callers can't mutate stored state."""

    def __init__(self):
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def list_by_prefix(self, prefix: str) -> list[str]:
        async with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex[:12]}"


class UserRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{USER_PREFIX}{user_id}"

    async def save(self, user: User) -> User:
        await self.store.set(self._key(user.id), user.model_dump(mode="json"))
        return user

    async def get(self, user_id: str) -> Optional[User]:
        data = await self.store.get(self._key(user_id))
        return User.model_validate(data) if data else None

    async def require(self, user_id: str) -> User:
        user = await self.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in await self.list_all():
            if user.email.lower() == wanted:
                return user
        return None

    async def list_all(self) -> list[User]:
        users = []
        for key in await self.store.list_by_prefix(USER_PREFIX):
            data = await self.store.get(key)
            if data:
                users.append(User.model_validate(data))
        return sorted(users, key=lambda u: u.created_at)

    async def delete(self, user_id: str) -> None:
        await self.store.delete(self._key(user_id))


class OverrideRepository:
    """Manual yes/no decisions keyed by override:{user}:{platform}:{show}."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str, platform: Platform, show_name: str) -> str:
        return f"{OVERRIDE_PREFIX}{user_id}:{Platform(platform).value}:{show_name}"

    async def get(self, user_id: str, platform: Platform, show_name: str) -> Optional[Override]:
        data = await self.store.get(self._key(user_id, platform, show_name))
        return Override.model_validate(data) if data else None

    async def set(self, user_id: str, platform: Platform, show_name: str, should_apply: bool) -> Override:
        existing = await self.get(user_id, platform, show_name)
        now = datetime.now()
        override = Override(
            user_id=user_id,
            show_name=show_name,
            platform=platform,
            should_apply=should_apply,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        await self.store.set(self._key(user_id, platform, show_name), override.model_dump(mode="json"))
        return override

    async def delete(self, user_id: str, platform: Platform, show_name: str) -> None:
        await self.store.delete(self._key(user_id, platform, show_name))

    async def list_for_user(self, user_id: str) -> list[Override]:
        overrides = []
        for key in await self.store.list_by_prefix(f"{OVERRIDE_PREFIX}{user_id}:"):
            data = await self.store.get(key)
            if data:
                overrides.append(Override.model_validate(data))
        return overrides


class ResultHistory:
    """Per-user application results, newest first, capped at `limit` entries."""

    def __init__(self, store: KeyValueStore, limit: int = 100):
        self.store = store
        self.limit = limit

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{HISTORY_PREFIX}{user_id}"

    async def record(self, user_id: str, results: list[LotteryResult]) -> None:
        if not results:
            return
        existing = await self.store.get(self._key(user_id)) or []
        newest = [r.model_dump(mode="json") for r in reversed(results)]
        await self.store.set(self._key(user_id), (newest + existing)[:self.limit])
        logger.debug(f"Recorded {len(results)} results for {user_id}")

    async def recent(self, user_id: str, limit: Optional[int] = None) -> list[LotteryResult]:
        data = await self.store.get(self._key(user_id)) or []
        if limit is not None:
            data = data[:limit]
        return [LotteryResult.model_validate(item) for item in data]

    async def clear(self, user_id: str) -> None:
        await self.store.delete(self._key(user_id))
