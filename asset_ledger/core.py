"""
Core types and pure functions for the asset ledger.

This module provides the foundational data structures for the ledger:
1. Immutable data structures: AssetRecord, ChangeRecord, HistoryStep, HistoryEntry
2. Exceptions: LedgerError and domain-specific error types
3. Argument parsing: validated Decimal parsing for string arguments

Nothing in this module touches the world state.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import (
    Context, Decimal, Inexact, InvalidOperation, Overflow, ROUND_HALF_EVEN, getcontext,
)
from typing import Optional, Tuple


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances are adjusted with Decimal arithmetic and never rounded to a fixed
# number of places. The global context is configured once at module load.
# Amounts and balances do not depend on its precision: they are bounded by
# AMOUNT_MAX_EXPONENT / AMOUNT_MAX_SCALE, canonicalized by canonical_decimal()
# and adjusted in a context wide enough to hold the exact result.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

TRANS_TYPE_NONE = ""
TRANS_TYPE_DEBIT = "debit"
TRANS_TYPE_CREDIT = "credit"

TRANS_TYPES = frozenset({TRANS_TYPE_NONE, TRANS_TYPE_DEBIT, TRANS_TYPE_CREDIT})

# Wire names of the record fields, in encoding order.
RECORD_FIELDS: Tuple[str, ...] = (
    "dealerID",
    "msisdn",
    "mpin",
    "balance",
    "status",
    "transAmount",
    "transType",
    "remarks",
)

NUMERIC_FIELDS = frozenset({"balance", "transAmount"})

# Representable amounts: |value| < 10**(AMOUNT_MAX_EXPONENT + 1), with no
# significant digit below 10**-AMOUNT_MAX_SCALE.
AMOUNT_MAX_EXPONENT = 1000
AMOUNT_MAX_SCALE = 1000


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class AssetNotFound(LedgerError):
    """Raised when an operation targets a key that holds no asset."""
    pass


class InvalidArgument(LedgerError):
    """Raised when an operation argument cannot be parsed or is out of its domain."""
    pass


class UnknownOperation(InvalidArgument):
    """Raised when an operation name is not registered."""
    pass


class DecodeError(LedgerError):
    """Raised when stored bytes are not a well-formed asset record."""
    pass


class StoreUnavailable(LedgerError):
    """Raised when a world state call fails or times out."""
    pass


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

def canonical_decimal(d: Decimal) -> Decimal:
    """
    Strip trailing zeros from a finite Decimal without rounding.

    Unlike Decimal.normalize(), the global context precision never applies:
    canonical_decimal(Decimal("74.50")) == Decimal("74.5") digit for digit,
    however many significant digits d carries. Zero (of any sign or
    exponent) becomes Decimal(0).
    """
    if not d:
        return Decimal(0)
    sign, digits, exponent = d.as_tuple()
    end = len(digits)
    while digits[end - 1] == 0:
        end -= 1
    return Decimal((sign, digits[:end], exponent + len(digits) - end))


def in_amount_range(d: Decimal) -> bool:
    """True if finite d lies within the representable amount range."""
    canonical = canonical_decimal(d)
    if not canonical:
        return True
    return (canonical.adjusted() <= AMOUNT_MAX_EXPONENT
            and canonical.as_tuple().exponent >= -AMOUNT_MAX_SCALE)


def _check_finite(name: str, value: Decimal) -> None:
    if not isinstance(value, Decimal):
        raise ValueError(f"AssetRecord {name} must be Decimal, got {type(value)}")
    if value.is_infinite() or value.is_nan():
        raise ValueError(f"AssetRecord {name} must be finite, got {value}")
    if not in_amount_range(value):
        raise ValueError(f"AssetRecord {name} out of range: {value}")


def _exact_sum(a: Decimal, b: Decimal) -> Decimal:
    """a + b computed without rounding."""
    a, b = canonical_decimal(a), canonical_decimal(b)
    exponent = min(a.as_tuple().exponent, b.as_tuple().exponent)
    top = max(a.adjusted(), b.adjusted())
    context = Context(
        prec=max(top - exponent + 2, 1),
        rounding=ROUND_HALF_EVEN,
        traps=[InvalidOperation, Overflow, Inexact],
    )
    return context.add(a, b)


@dataclass(frozen=True, slots=True)
class AssetRecord:
    """
    The world-state value stored under one subscriber key.

    Attributes:
        dealer_id: Opaque dealer identifier, set at creation.
        msisdn: Subscriber identifier; the record's key.
        mpin: PIN credential, stored verbatim.
        balance: Current balance (finite, may be negative).
        status: Opaque lifecycle tag.
        trans_amount: Amount of the most recent transaction (0 after creation).
        trans_type: "debit", "credit", or "" after creation.
        remarks: Description of the most recent transaction.

    This class is immutable (frozen=True); transitions produce new records
    via dataclasses.replace(). All fields are validated in __post_init__.
    """
    dealer_id: str
    msisdn: str
    mpin: str
    balance: Decimal
    status: str
    trans_amount: Decimal = Decimal("0")
    trans_type: str = TRANS_TYPE_NONE
    remarks: str = ""

    def __post_init__(self):
        for name in ("dealer_id", "msisdn", "mpin", "status", "trans_type", "remarks"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ValueError(f"AssetRecord {name} must be str, got {type(value)}")
        _check_finite("balance", self.balance)
        _check_finite("trans_amount", self.trans_amount)
        if self.trans_type not in TRANS_TYPES:
            raise ValueError(f"AssetRecord trans_type not in {sorted(TRANS_TYPES)}, got {self.trans_type!r}")

    def apply(self, amount: Decimal, trans_type: str, remarks: str) -> AssetRecord:
        """
        Return the record after a debit or credit of amount.

        Debit subtracts from the balance, credit adds to it. The transaction
        metadata is overwritten; no lower bound is enforced on the balance.

        Raises:
            InvalidArgument: If trans_type is neither debit nor credit, or
                the new balance falls outside the amount range.
        """
        if trans_type == TRANS_TYPE_DEBIT:
            delta = amount.copy_negate()
        elif trans_type == TRANS_TYPE_CREDIT:
            delta = amount
        else:
            raise InvalidArgument("Transaction type must be either debit or credit")
        try:
            balance = _exact_sum(self.balance, delta)
        except (Overflow, Inexact) as exc:
            raise InvalidArgument(f"balance overflow applying {trans_type} of {amount}") from exc
        if not in_amount_range(balance):
            raise InvalidArgument(f"balance out of range after {trans_type} of {amount}")
        return replace(
            self,
            balance=balance,
            trans_amount=amount,
            trans_type=trans_type,
            remarks=remarks,
        )

    def __repr__(self) -> str:
        return f"AssetRecord({self.msisdn}: {self.balance} [{self.status}])"


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """
    One entry of the world state's per-key change log.

    Attributes:
        tx_id: Host-assigned transaction identifier.
        timestamp: Host-assigned commit time.
        is_delete: True if this change removed the key.
        value: Payload written by the change; empty for deletions.
    """
    tx_id: str
    timestamp: datetime
    is_delete: bool
    value: bytes = b""


@dataclass(frozen=True, slots=True)
class HistoryStep:
    """
    Result of advancing a history iterator once.

    The terminal step (done=True) may still carry a value.
    """
    value: Optional[ChangeRecord]
    done: bool


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A point-in-time snapshot of an asset, reconstructed from the change log."""
    tx_id: str
    timestamp: datetime
    is_delete: bool
    value: AssetRecord


# ============================================================================
# ARGUMENT PARSING
# ============================================================================

def parse_amount(text: str, field_name: str) -> Decimal:
    """
    Parse a string argument as a finite Decimal.

    Args:
        text: Raw argument as received from the host.
        field_name: Name used in the error message.

    Returns:
        The parsed Decimal.

    Raises:
        InvalidArgument: If text is not a number, is NaN/Infinity, or lies
            outside the amount range.
    """
    if not isinstance(text, str):
        raise InvalidArgument(f"{field_name} must be a string, got {type(text).__name__}")
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        raise InvalidArgument(f"{field_name} is not a valid number: {text!r}") from None
    if not value.is_finite():
        raise InvalidArgument(f"{field_name} must be finite, got {text!r}")
    if not in_amount_range(value):
        raise InvalidArgument(f"{field_name} is out of range: {text!r}")
    return value


def require_key(msisdn: str) -> str:
    """Return msisdn if it is usable as a world state key."""
    if not isinstance(msisdn, str) or not msisdn:
        raise InvalidArgument("msisdn must be a non-empty string")
    return msisdn
