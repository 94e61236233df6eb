"""키 단위 비동기 잠금 — 템플릿별 재생성 직렬화에 사용.

Keyed asyncio locks — Used to serialize shift generation per template
inside one process. Locks are created on demand and dropped once no
holder or waiter remains, so the registry never grows unbounded.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """키별 asyncio.Lock 레지스트리.

    Registry of per-key asyncio locks with reference counting.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def locked(self, key: Hashable) -> bool:
        """키가 현재 점유 중인지 확인합니다 (Whether the key is currently held)."""
        lock: asyncio.Lock | None = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """키 잠금을 획득하고 블록 종료 시 해제합니다.

        Acquire the lock for ``key`` for the duration of the block.
        Callers wanting non-blocking semantics check :meth:`locked` first;
        there is no await between the check and the acquire, so the pair is
        atomic on a single event loop.
        """
        lock: asyncio.Lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]
