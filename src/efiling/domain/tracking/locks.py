"""Per-declaration locks guarding status transitions."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.domain.errors import TransitionInProgressError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from uuid import UUID

log = getLogger(__name__)


class DeclarationLocks:
    """Registry handing out one re-entrant lock per declaration id.

    ``timeout=None`` waits until the lock is free, ``timeout=0`` fails at once,
    any positive value waits at most that many seconds. Failing to acquire raises
    ``TransitionInProgressError``.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.RLock] = {}

    def _lock_for(self, declaration_id: UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(declaration_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[declaration_id] = lock
            return lock

    @contextmanager
    def hold(self, declaration_id: UUID, *, timeout: float | None = None) -> Iterator[None]:
        lock = self._lock_for(declaration_id)
        if timeout is None:
            acquired = lock.acquire()
        elif timeout <= 0:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(timeout=timeout)
        if not acquired:
            log.info(f"Declaration {declaration_id} is locked by another actor")
            raise TransitionInProgressError(declaration_id)
        try:
            yield
        finally:
            lock.release()
