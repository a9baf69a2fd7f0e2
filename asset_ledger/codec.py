"""
codec.py - World state encoding for asset records

Records are stored as UTF-8 JSON objects with a fixed field order:

    {"dealerID":"D1","msisdn":"9999999999","mpin":"1234","balance":100,
     "status":"active","transAmount":0,"transType":"","remarks":""}

Numbers are written from Decimal in canonical form and read back as Decimal,
so the encoding never passes through float. Semantically equal records
always produce identical bytes.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Iterable
import json

from .core import (
    AssetRecord, HistoryEntry,
    RECORD_FIELDS, NUMERIC_FIELDS,
    canonical_decimal,
    DecodeError,
)


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical JSON number.

    - Decimal("100.0") and Decimal("100") both become "100"
    - Trailing zeros are removed: Decimal("74.50") becomes "74.5"
    - Scientific notation is never produced
    - No digit is ever rounded away
    """
    normalized = canonical_decimal(d)
    if not normalized:
        return "0"
    return format(normalized, 'f')


def _render_value(value: Any) -> str:
    if isinstance(value, Decimal):
        return _normalize_decimal(value)
    return json.dumps(value, ensure_ascii=False)


def _record_fields(record: AssetRecord) -> Dict[str, Any]:
    return {
        "dealerID": record.dealer_id,
        "msisdn": record.msisdn,
        "mpin": record.mpin,
        "balance": record.balance,
        "status": record.status,
        "transAmount": record.trans_amount,
        "transType": record.trans_type,
        "remarks": record.remarks,
    }


def render_record(record: AssetRecord) -> str:
    """Render a record as canonical JSON text."""
    fields = _record_fields(record)
    body = ",".join(f"{json.dumps(name)}:{_render_value(fields[name])}" for name in RECORD_FIELDS)
    return f"{{{body}}}"


def encode(record: AssetRecord) -> bytes:
    """Serialize a record to its world state representation."""
    return render_record(record).encode("utf-8")


def _reject_constant(name: str) -> Any:
    raise DecodeError(f"non-finite number in asset payload: {name}")


def loads(text: str) -> Any:
    """
    Parse JSON text produced by this module.

    Numbers are returned as Decimal; NaN and Infinity literals are rejected.
    """
    return json.loads(
        text,
        parse_float=Decimal,
        parse_int=Decimal,
        parse_constant=_reject_constant,
    )


def record_from_dict(data: Any) -> AssetRecord:
    """
    Build a record from a parsed JSON object.

    Raises:
        DecodeError: If fields are missing or have the wrong type.
    """
    if not isinstance(data, dict):
        raise DecodeError(f"asset payload must be a JSON object, got {type(data).__name__}")

    missing = [name for name in RECORD_FIELDS if name not in data]
    if missing:
        raise DecodeError(f"asset payload missing fields: {', '.join(missing)}")

    for name in RECORD_FIELDS:
        value = data[name]
        expected = Decimal if name in NUMERIC_FIELDS else str
        if not isinstance(value, expected):
            raise DecodeError(
                f"asset field {name} must be {'number' if expected is Decimal else 'string'}, "
                f"got {type(value).__name__}"
            )

    try:
        return AssetRecord(
            dealer_id=data["dealerID"],
            msisdn=data["msisdn"],
            mpin=data["mpin"],
            balance=data["balance"],
            status=data["status"],
            trans_amount=data["transAmount"],
            trans_type=data["transType"],
            remarks=data["remarks"],
        )
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc


def decode(payload: bytes) -> AssetRecord:
    """
    Deserialize a record from its world state representation.

    Raises:
        DecodeError: If payload is not a well-formed encoded record.
    """
    try:
        text = bytes(payload).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"asset payload is not valid UTF-8: {exc}") from exc
    try:
        data = loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"asset payload is not valid JSON: {exc}") from exc
    return record_from_dict(data)


def render_history(entries: Iterable[HistoryEntry]) -> str:
    """Render reconstructed history as a JSON array, preserving order."""
    items = []
    for entry in entries:
        items.append(
            f'{{"txId":{json.dumps(entry.tx_id)},'
            f'"timestamp":{json.dumps(entry.timestamp.isoformat())},'
            f'"isDelete":{"true" if entry.is_delete else "false"},'
            f'"value":{render_record(entry.value)}}}'
        )
    return f"[{','.join(items)}]"
