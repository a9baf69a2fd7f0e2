"""
world_state.py - In-memory world state host

InMemoryWorldState plays the host's role for the asset contract: it holds
the committed key-value state, runs one contract invocation per transaction
and keeps the per-key change log the contract reads history from.

Key responsibilities:
    - Stages each invocation's writes in a TransactionContext
    - Commits staged writes atomically under one transaction id and timestamp
    - Rejects a commit whose reads went stale (version check per key)
    - Appends every committed change to the key's history log
    - Discards staged writes when the invocation raises
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple
import asyncio

from .codec import decode
from .contract import invoke, READ_ONLY_OPERATIONS
from .core import (
    AssetRecord, ChangeRecord, HistoryStep,
    LedgerError, InvalidArgument,
)


class CommitResult(Enum):
    """
    Outcome of a commit attempt.

    VALID: Staged writes were applied and logged.
    MVCC_READ_CONFLICT: A key read by the transaction changed since it was
                        read; nothing was applied.
    """
    VALID = "valid"
    MVCC_READ_CONFLICT = "mvcc_read_conflict"


class TransactionRejected(LedgerError):
    """Raised by submit() when the host refuses to commit an invocation."""
    pass


@dataclass(frozen=True, slots=True)
class CommittedTransaction:
    """
    A committed, immutable record of world state writes.

    Attributes:
        tx_id: Host-assigned transaction identifier
        timestamp: Commit time (the host's logical clock)
        sequence_number: Monotonic sequence within the world state
        operation: Contract operation that produced the writes
        writes: (key, value) pairs in write order; value None means deletion
    """
    tx_id: str
    timestamp: datetime
    sequence_number: int
    operation: str
    writes: Tuple[Tuple[str, Optional[bytes]], ...]

    def __repr__(self) -> str:
        w = 80
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.tx_id)}│",
            f"├{bar}┤",
            f"│{pad('   operation : ' + self.operation)}│",
            f"│{pad('   timestamp : ' + str(self.timestamp))}│",
            f"│{pad('   sequence  : ' + str(self.sequence_number))}│",
            f"├{bar}┤",
        ]
        for key, value in self.writes:
            action = "DELETE" if value is None else f"PUT {len(value)} bytes"
            lines.append(f"│{pad('   ' + key + ': ' + action)}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


class InMemoryHistoryIterator:
    """
    History iterator over a snapshot of one key's change log.

    The last change is delivered on the terminal step (done=True); an empty
    log yields a single terminal step with no value.
    """

    def __init__(self, changes: Tuple[ChangeRecord, ...]):
        self._changes = changes
        self._position = 0
        self.closed = False

    async def next(self) -> HistoryStep:
        if self.closed:
            raise LedgerError("History iterator is closed")
        if self._position >= len(self._changes):
            return HistoryStep(value=None, done=True)
        change = self._changes[self._position]
        self._position += 1
        return HistoryStep(value=change, done=self._position == len(self._changes))

    async def close(self) -> None:
        self.closed = True


class TransactionContext:
    """
    World state view for one invocation.

    Reads return committed state and record the version seen; writes are
    staged until InMemoryWorldState.commit(). Reads do not observe the
    transaction's own staged writes.
    """

    def __init__(self, world_state: InMemoryWorldState, operation: str = ""):
        self._world_state = world_state
        self.operation = operation
        self.read_set: Dict[str, int] = {}
        self.write_set: Dict[str, Optional[bytes]] = {}
        self.iterators: List[InMemoryHistoryIterator] = []
        self.finished = False

    async def get_state(self, key: str) -> Optional[bytes]:
        self.read_set.setdefault(key, self._world_state.version(key))
        return self._world_state.state.get(key)

    async def put_state(self, key: str, value: bytes) -> None:
        if not key:
            raise InvalidArgument("World state key must not be empty")
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"World state value must be bytes, got {type(value).__name__}")
        self.write_set[key] = bytes(value)

    async def delete_state(self, key: str) -> None:
        if not key:
            raise InvalidArgument("World state key must not be empty")
        self.write_set[key] = None

    async def get_history_for_key(self, key: str) -> InMemoryHistoryIterator:
        iterator = InMemoryHistoryIterator(tuple(self._world_state.history.get(key, ())))
        self.iterators.append(iterator)
        return iterator


class InMemoryWorldState:
    """
    Versioned key-value world state with a per-key change log.

    Thread Safety:
        Not thread-safe. Concurrency is modelled with interleaved
        TransactionContexts and version checks at commit.

    Example:
        world = InMemoryWorldState("main", tick=timedelta(seconds=1))
        world.submit("CreateAsset", "D1", "9999999999", "1234", "100.0", "active")
        world.submit("UpdateBalance", "9999999999", "25.5", "debit", "atm withdrawal")
        print(world.evaluate("GetAssetHistory", "9999999999"))
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        tick: Optional[timedelta] = None,
    ):
        """
        Create a world state.

        Args:
            name: World state identifier (part of every transaction id)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print each commit outcome (default: True)
            tick: Advance the clock by this much after every commit (default: no advance)
        """
        self.name = name
        self.state: Dict[str, bytes] = {}
        self.versions: Dict[str, int] = {}
        self.history: Dict[str, List[ChangeRecord]] = {}
        self.transaction_log: List[CommittedTransaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self.tick = tick
        self._next_sequence: int = 0

    # ========================================================================
    # READ ACCESS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the world state."""
        return self._current_time

    def version(self, key: str) -> int:
        """Number of committed changes to key (0 if never written)."""
        return self.versions.get(key, 0)

    def get_record(self, msisdn: str) -> Optional[AssetRecord]:
        """Decode the committed asset at msisdn, or None if absent."""
        payload = self.state.get(msisdn)
        if not payload:
            return None
        return decode(payload)

    def list_keys(self) -> List[str]:
        """List all keys currently holding a value."""
        return sorted(self.state.keys())

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def begin(self, operation: str = "") -> TransactionContext:
        """Open a transaction context for one invocation."""
        return TransactionContext(self, operation)

    def _generate_tx_id(self, sequence: int) -> str:
        """
        Generate a unique transaction ID.

        Format: tx:{name}:{sequence:012d}:{timestamp_micros}
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"tx:{self.name}:{sequence:012d}:{micros}"

    def commit(self, ctx: TransactionContext) -> CommitResult:
        """
        Apply a context's staged writes atomically.

        Every key in the read set must still be at the version that was
        read; otherwise nothing is applied. A context with no writes
        commits without consuming a sequence number.

        Raises:
            LedgerError: If the context was already committed or discarded
        """
        if ctx.finished:
            raise LedgerError("Transaction context already finished")
        ctx.finished = True

        for key, seen in sorted(ctx.read_set.items()):
            if self.version(key) != seen:
                if self.verbose:
                    print(f"✗ MVCC_READ_CONFLICT: {ctx.operation or 'tx'} read {key}@{seen}, "
                          f"now @{self.version(key)}")
                return CommitResult.MVCC_READ_CONFLICT

        if not ctx.write_set:
            return CommitResult.VALID

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = CommittedTransaction(
            tx_id=self._generate_tx_id(sequence),
            timestamp=self._current_time,
            sequence_number=sequence,
            operation=ctx.operation,
            writes=tuple(ctx.write_set.items()),
        )

        for key, value in tx.writes:
            if value is None:
                self.state.pop(key, None)
            else:
                self.state[key] = value
            self.versions[key] = self.version(key) + 1
            self.history.setdefault(key, []).append(ChangeRecord(
                tx_id=tx.tx_id,
                timestamp=tx.timestamp,
                is_delete=value is None,
                value=value or b"",
            ))

        self.transaction_log.append(tx)
        if self.tick is not None:
            self._current_time = self._current_time + self.tick

        if self.verbose:
            print(repr(tx))
            print(f"✓ VALID: {tx.tx_id}")
        return CommitResult.VALID

    def discard(self, ctx: TransactionContext) -> None:
        """Drop a context's staged writes."""
        ctx.finished = True
        ctx.write_set.clear()

    # ========================================================================
    # INVOCATION
    # ========================================================================

    async def submit_async(self, operation: str, *args: str, timeout: Optional[float] = None) -> str:
        """
        Invoke an operation and commit its writes.

        If the operation raises, its staged writes are discarded and the
        error propagates.

        Raises:
            TransactionRejected: If the commit fails validation
        """
        ctx = self.begin(operation)
        try:
            result = await invoke(ctx, operation, args, timeout=timeout)
        except BaseException:
            self.discard(ctx)
            if self.verbose:
                print(f"✗ FAILED: {operation}")
            raise

        outcome = self.commit(ctx)
        if outcome is not CommitResult.VALID:
            raise TransactionRejected(f"{operation} rejected: {outcome.value}")
        return result

    async def evaluate_async(self, operation: str, *args: str, timeout: Optional[float] = None) -> str:
        """Invoke a read-only operation without committing anything."""
        if operation not in READ_ONLY_OPERATIONS:
            raise InvalidArgument(f"{operation} is not a read-only operation")
        ctx = self.begin(operation)
        try:
            return await invoke(ctx, operation, args, timeout=timeout)
        finally:
            self.discard(ctx)

    def submit(self, operation: str, *args: str) -> str:
        """Synchronous submit_async()."""
        return asyncio.run(self.submit_async(operation, *args))

    def evaluate(self, operation: str, *args: str) -> str:
        """Synchronous evaluate_async()."""
        return asyncio.run(self.evaluate_async(operation, *args))

    def delete(self, key: str) -> CommitResult:
        """Delete key in its own transaction (a host-level event)."""
        if not key:
            raise InvalidArgument("World state key must not be empty")
        ctx = self.begin("delete")
        ctx.write_set[key] = None
        return self.commit(ctx)

    def __repr__(self) -> str:
        return (f"InMemoryWorldState({self.name!r}, {len(self.state)} keys, "
                f"{len(self.transaction_log)} transactions)")
