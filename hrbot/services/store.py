"""
Per-user persistent key-value store.

Every Telegram user gets their own namespace, so the session token, the
decoded claims and the wizard's resume index survive bot restarts the same
way they would survive an app restart on a phone.
"""
from typing import Dict, List, Optional, Protocol, Union
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from hrbot.constants import StoreKey
from hrbot.database.models import StoredValue
from hrbot.database.session import async_session_maker, get_session
from hrbot.logger import get_logger

logger = get_logger(__name__)

Key = Union[str, StoreKey]


def _key(key: Key) -> str:
    return key.value if isinstance(key, StoreKey) else key


class KeyValueStore(Protocol):
    """Minimal async get/set store."""

    async def get(self, key: Key) -> Optional[str]: ...

    async def set(self, key: Key, value: str) -> None: ...

    async def remove(self, key: Key) -> None: ...

    async def clear(self) -> None: ...


class SqlKeyValueStore:
    """Key-value store backed by the bot database, scoped to one owner."""

    def __init__(
        self,
        owner_id: int,
        session_factory: async_sessionmaker = async_session_maker,
    ):
        self.owner_id = owner_id
        self.session_factory = session_factory

    async def get(self, key: Key) -> Optional[str]:
        """Get a value, or None when the key is absent."""
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                select(StoredValue.value).where(
                    StoredValue.owner_id == self.owner_id,
                    StoredValue.key == _key(key),
                )
            )
            return result.scalar_one_or_none()

    async def set(self, key: Key, value: str) -> None:
        """Insert or overwrite a value."""
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                select(StoredValue).where(
                    StoredValue.owner_id == self.owner_id,
                    StoredValue.key == _key(key),
                )
            )
            row = result.scalar_one_or_none()

            if row:
                row.value = value
            else:
                session.add(
                    StoredValue(owner_id=self.owner_id, key=_key(key), value=value)
                )

    async def remove(self, key: Key) -> None:
        """Delete a single key."""
        async with get_session(self.session_factory) as session:
            await session.execute(
                delete(StoredValue).where(
                    StoredValue.owner_id == self.owner_id,
                    StoredValue.key == _key(key),
                )
            )

    async def clear(self) -> None:
        """Delete every key belonging to this owner."""
        async with get_session(self.session_factory) as session:
            await session.execute(
                delete(StoredValue).where(StoredValue.owner_id == self.owner_id)
            )
        logger.info("Store cleared", owner_id=self.owner_id)

    @staticmethod
    async def owners_with_key(
        key: Key,
        session_factory: async_sessionmaker = async_session_maker,
    ) -> List[int]:
        """List owners that currently hold the given key."""
        async with get_session(session_factory) as session:
            result = await session.execute(
                select(StoredValue.owner_id)
                .where(StoredValue.key == _key(key))
                .order_by(StoredValue.owner_id.asc())
            )
            return list(result.scalars().all())


class MemoryKeyValueStore:
    """In-process store, used for tests and local runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: Key) -> Optional[str]:
        return self.data.get(_key(key))

    async def set(self, key: Key, value: str) -> None:
        self.data[_key(key)] = value

    async def remove(self, key: Key) -> None:
        self.data.pop(_key(key), None)

    async def clear(self) -> None:
        self.data.clear()


async def read_active_step(store: KeyValueStore) -> Optional[int]:
    """Read the persisted wizard index; None if absent or not an integer."""
    raw = await store.get(StoreKey.ACTIVE_STEP)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed activeStep", value=raw)
        return None


async def write_active_step(store: KeyValueStore, step: int) -> None:
    """Persist the wizard index as a decimal string."""
    await store.set(StoreKey.ACTIVE_STEP, str(step))
