"""Serialisation of basket mutations."""
import asyncio
import enum
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


class MutationPolicy(enum.Enum):
    """What to do when a mutation arrives while another is in flight."""

    QUEUE = "queue"
    REJECT = "reject"


class MutationInProgress(Exception):
    """Raised by a rejecting guard when a mutation is already running."""


class MutationGuard:
    """
    Allows at most one mutation in flight.

    With QUEUE, later callers wait for the lock. With REJECT, they get
    MutationInProgress immediately and nothing else happens.
    """

    def __init__(self, policy: MutationPolicy = MutationPolicy.QUEUE):
        self._policy = MutationPolicy(policy)
        self._lock: Optional[asyncio.Lock] = None

    @property
    def policy(self) -> MutationPolicy:
        return self._policy

    @property
    def busy(self) -> bool:
        return self._lock is not None and self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        # Created on first use so the lock belongs to the running loop.
        if self._lock is None:
            self._lock = asyncio.Lock()
        if self._policy is MutationPolicy.REJECT and self._lock.locked():
            raise MutationInProgress("A basket mutation is already in progress")
        async with self._lock:
            yield
