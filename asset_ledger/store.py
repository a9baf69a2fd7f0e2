"""
store.py - World state interface consumed by the asset contract

The host supplies the world state. Every call is a coroutine that suspends
the invocation until the store replies.

Classes:
- WorldState: Protocol for get/put/history access to the versioned store
- HistoryIterator: Protocol for the single-use change log iterator
- StoreAccessor: WorldState wrapper that bounds calls with a timeout and
  reports store faults as StoreUnavailable
"""

from __future__ import annotations
import asyncio
from typing import Awaitable, Optional, Protocol, TypeVar, runtime_checkable

from .core import HistoryStep, StoreUnavailable

T = TypeVar("T")


@runtime_checkable
class HistoryIterator(Protocol):
    """
    Forward-only, single-use iterator over one key's change log.

    Entries are produced oldest to newest. The iterator must be closed
    after use on every exit path.
    """

    async def next(self) -> HistoryStep:
        """Advance once. The step with done=True may still carry a value."""
        ...

    async def close(self) -> None:
        """Release the iterator."""
        ...


@runtime_checkable
class WorldState(Protocol):
    """
    Versioned key-value store supplied by the host.

    Any object implementing these three coroutines can serve as the
    world state for the asset contract.
    """

    async def get_state(self, key: str) -> Optional[bytes]:
        """Return the value stored at key, or None if the key is absent."""
        ...

    async def put_state(self, key: str, value: bytes) -> None:
        """Write value at key. Raises if the store does not acknowledge."""
        ...

    async def get_history_for_key(self, key: str) -> HistoryIterator:
        """Open an iterator over every committed change to key."""
        ...


# Faults a store may raise that mean "the store did not answer".
STORE_FAULTS = (OSError, ConnectionError, asyncio.TimeoutError)


async def _call(operation: str, key: str, call: Awaitable[T], timeout: Optional[float]) -> T:
    try:
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout)
    except STORE_FAULTS as exc:
        raise StoreUnavailable(f"{operation}({key}) failed: {exc!r}") from exc


class _AccessedHistoryIterator:
    """HistoryIterator wrapper applying the accessor's fault translation."""

    def __init__(self, inner: HistoryIterator, key: str, timeout: Optional[float]):
        self._inner = inner
        self._key = key
        self._timeout = timeout

    async def next(self) -> HistoryStep:
        return await _call("history.next", self._key, self._inner.next(), self._timeout)

    async def close(self) -> None:
        await _call("history.close", self._key, self._inner.close(), self._timeout)


class StoreAccessor:
    """
    WorldState wrapper used by the contract for every store call.

    Ledger errors raised by the store pass through unchanged; I/O faults and
    timeouts are raised as StoreUnavailable with the original as __cause__.
    No call is retried.

    Example:
        accessor = StoreAccessor(world_state, timeout=5.0)
        payload = await accessor.get_state("9999999999")
    """

    def __init__(self, store: WorldState, timeout: Optional[float] = None):
        """
        Args:
            store: The host-supplied world state
            timeout: Seconds to wait for each store reply (None waits forever)
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.store = store
        self.timeout = timeout

    async def get_state(self, key: str) -> Optional[bytes]:
        return await _call("get_state", key, self.store.get_state(key), self.timeout)

    async def put_state(self, key: str, value: bytes) -> None:
        await _call("put_state", key, self.store.put_state(key, value), self.timeout)

    async def get_history_for_key(self, key: str) -> HistoryIterator:
        inner = await _call(
            "get_history_for_key", key, self.store.get_history_for_key(key), self.timeout
        )
        return _AccessedHistoryIterator(inner, key, self.timeout)

    def __repr__(self) -> str:
        return f"StoreAccessor({self.store!r}, timeout={self.timeout})"
