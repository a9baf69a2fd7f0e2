"""
asset_ledger - Subscriber Asset Ledger

Business logic for keyed asset records: creation, debit/credit, lookup and
history replay against a host-supplied versioned world state.

Usage:
    from datetime import timedelta
    from asset_ledger import InMemoryWorldState

    world = InMemoryWorldState("main", tick=timedelta(seconds=1))
    world.submit("CreateAsset", "D1", "9999999999", "1234", "100.0", "active")
    world.submit("UpdateBalance", "9999999999", "25.5", "debit", "atm withdrawal")

    world.evaluate("QueryAsset", "9999999999")
    # '{"dealerID":"D1","msisdn":"9999999999",...,"balance":74.5,...}'

Any object implementing the WorldState protocol can stand in for the
in-memory host:

    result = await invoke(store, "QueryAsset", ["9999999999"])
"""

# Core types
from .core import (
    AssetRecord,
    ChangeRecord,
    HistoryStep,
    HistoryEntry,
    LedgerError,
    AssetNotFound,
    InvalidArgument,
    UnknownOperation,
    DecodeError,
    StoreUnavailable,
    parse_amount,
    canonical_decimal,
    in_amount_range,
    TRANS_TYPE_DEBIT,
    TRANS_TYPE_CREDIT,
    RECORD_FIELDS,
    AMOUNT_MAX_EXPONENT,
    AMOUNT_MAX_SCALE,
)

# Codec
from .codec import (
    encode,
    decode,
    loads,
    render_record,
    render_history,
)

# Store interface
from .store import (
    WorldState,
    HistoryIterator,
    StoreAccessor,
)

# History
from .history import (
    reconstruct_history,
    load_history,
    asset_at,
)

# Contract
from .contract import (
    OPERATIONS,
    invoke,
    read_asset,
    create_asset,
    update_balance,
    query_asset,
    get_asset_history,
)

# In-memory host
from .world_state import (
    InMemoryWorldState,
    InMemoryHistoryIterator,
    TransactionContext,
    CommittedTransaction,
    CommitResult,
    TransactionRejected,
)

__all__ = [
    # Core
    'AssetRecord', 'ChangeRecord', 'HistoryStep', 'HistoryEntry',
    'LedgerError', 'AssetNotFound', 'InvalidArgument', 'UnknownOperation',
    'DecodeError', 'StoreUnavailable',
    'parse_amount', 'canonical_decimal', 'in_amount_range',
    'TRANS_TYPE_DEBIT', 'TRANS_TYPE_CREDIT', 'RECORD_FIELDS',
    'AMOUNT_MAX_EXPONENT', 'AMOUNT_MAX_SCALE',
    # Codec
    'encode', 'decode', 'loads', 'render_record', 'render_history',
    # Store
    'WorldState', 'HistoryIterator', 'StoreAccessor',
    # History
    'reconstruct_history', 'load_history', 'asset_at',
    # Contract
    'OPERATIONS', 'invoke', 'read_asset',
    'create_asset', 'update_balance', 'query_asset', 'get_asset_history',
    # Host
    'InMemoryWorldState', 'InMemoryHistoryIterator', 'TransactionContext',
    'CommittedTransaction', 'CommitResult', 'TransactionRejected',
]

__version__ = '1.0.0'
