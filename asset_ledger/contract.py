"""
contract.py - Asset contract operations

Each operation is an async function taking the world state followed by the
string arguments supplied by the host. Operations validate every argument
before they write, so a failed invocation never leaves a partial write.

Following the handler convention of the package:
- No contract base class, just functions
- OPERATIONS dict maps operation names to functions
- invoke() is the single entry point used by the host
"""

from __future__ import annotations
from typing import Awaitable, Callable, Dict, Optional, Sequence

from .codec import decode, encode, render_history, render_record
from .core import (
    AssetRecord, AssetNotFound, InvalidArgument, UnknownOperation,
    TRANS_TYPE_NONE,
    parse_amount, require_key,
)
from .history import load_history
from .store import StoreAccessor, WorldState

Operation = Callable[..., Awaitable[str]]


async def read_asset(store: WorldState, msisdn: str) -> AssetRecord:
    """
    Load and decode the asset stored at msisdn.

    Raises:
        AssetNotFound: If the key holds no value
        DecodeError: If the stored bytes are not a valid record
    """
    payload = await store.get_state(msisdn)
    if not payload:
        raise AssetNotFound(f"Asset {msisdn} does not exist")
    return decode(payload)


async def create_asset(
    store: WorldState,
    dealer_id: str,
    msisdn: str,
    mpin: str,
    balance: str,
    status: str,
) -> str:
    """
    Write a new asset at msisdn.

    The write is unconditional: an existing asset at the same key is
    replaced (last write wins).
    """
    require_key(msisdn)
    record = AssetRecord(
        dealer_id=dealer_id,
        msisdn=msisdn,
        mpin=mpin,
        balance=parse_amount(balance, "balance"),
        status=status,
        trans_type=TRANS_TYPE_NONE,
        remarks="",
    )
    await store.put_state(msisdn, encode(record))
    return f"Asset {msisdn} created successfully"


async def update_balance(
    store: WorldState,
    msisdn: str,
    trans_amount: str,
    trans_type: str,
    remarks: str,
) -> str:
    """
    Debit or credit the asset at msisdn and record the transaction.

    Only the latest transaction's amount, type and remarks are kept on the
    record; earlier ones are recoverable through the history.
    """
    require_key(msisdn)
    current = await read_asset(store, msisdn)
    amount = parse_amount(trans_amount, "transAmount")
    updated = current.apply(amount, trans_type, remarks)
    await store.put_state(msisdn, encode(updated))
    return f"Balance for asset {msisdn} updated successfully"


async def query_asset(store: WorldState, msisdn: str) -> str:
    """Return the asset at msisdn as JSON."""
    require_key(msisdn)
    return render_record(await read_asset(store, msisdn))


async def get_asset_history(store: WorldState, msisdn: str) -> str:
    """Return every committed snapshot of the asset at msisdn as a JSON array."""
    require_key(msisdn)
    return render_history(await load_history(store, msisdn))


# ============================================================================
# DISPATCH
# ============================================================================

OPERATIONS: Dict[str, Operation] = {
    "CreateAsset": create_asset,
    "UpdateBalance": update_balance,
    "QueryAsset": query_asset,
    "GetAssetHistory": get_asset_history,
}

ARITY: Dict[str, int] = {
    "CreateAsset": 5,
    "UpdateBalance": 4,
    "QueryAsset": 1,
    "GetAssetHistory": 1,
}

# Operations that never write to the world state.
READ_ONLY_OPERATIONS = frozenset({"QueryAsset", "GetAssetHistory"})


async def invoke(
    store: WorldState,
    operation: str,
    args: Sequence[str],
    timeout: Optional[float] = None,
) -> str:
    """
    Run one named operation against the world state.

    Args:
        store: World state supplied by the host
        operation: Operation name (see OPERATIONS)
        args: Ordered string arguments
        timeout: Seconds to wait for each store reply (None waits forever)

    Returns:
        The operation's result string

    Raises:
        UnknownOperation: If operation is not registered
        InvalidArgument: If the argument count is wrong, or an argument is not
            a string or cannot be encoded as UTF-8
        LedgerError: Any error raised by the operation itself
    """
    handler = OPERATIONS.get(operation)
    if handler is None:
        raise UnknownOperation(f"Unknown operation: {operation}")

    expected = ARITY[operation]
    if len(args) != expected:
        raise InvalidArgument(
            f"{operation} expects {expected} arguments, got {len(args)}"
        )
    for position, arg in enumerate(args):
        if not isinstance(arg, str):
            raise InvalidArgument(
                f"{operation} argument {position} must be a string, got {type(arg).__name__}"
            )
        try:
            arg.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidArgument(
                f"{operation} argument {position} is not encodable as UTF-8"
            ) from None

    return await handler(StoreAccessor(store, timeout), *args)
