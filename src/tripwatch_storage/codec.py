"""Conversion between domain values and YDB typed parameters / row values.

Timestamps are stored as ``Datetime`` (unix seconds, UTC). Absent optional
values are always bound as an explicit typed null so every DECLAREd parameter
is present in the call.
"""
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional

import ydb

DATETIME = ydb.PrimitiveType.Datetime
INT64 = ydb.PrimitiveType.Int64
INT32 = ydb.PrimitiveType.Int32
UTF8 = ydb.PrimitiveType.Utf8
BOOL = ydb.PrimitiveType.Bool
OPTIONAL_DATETIME = ydb.OptionalType(ydb.PrimitiveType.Datetime)
OPTIONAL_UTF8 = ydb.OptionalType(ydb.PrimitiveType.Utf8)

# Datetime is an unsigned 32-bit number of seconds
_DATETIME_MAX = 2 ** 32 - 1
_INT32_MIN = -2 ** 31
_INT32_MAX = 2 ** 31 - 1


class TypedParam(NamedTuple):
    """Raw parameter value plus the YDB type it is declared with"""
    value: Any
    type: Any

    def to_ydb(self) -> ydb.TypedValue:
        return ydb.TypedValue(self.value, self.type)


def utcnow() -> datetime:
    """Current UTC time with the precision the store keeps"""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_datetime(value: datetime) -> int:
    """Convert a datetime to Datetime seconds. Naive values are taken as UTC."""
    seconds = int(_as_utc(value).timestamp())
    if seconds < 0 or seconds > _DATETIME_MAX:
        raise ValueError(f"{value.isoformat()} is outside the Datetime range")
    return seconds


def decode_datetime(raw: Any) -> datetime:
    """Convert a stored Datetime (seconds or datetime) back to aware UTC"""
    if raw is None:
        raise ValueError("Datetime column is unexpectedly null")
    if isinstance(raw, datetime):
        return _as_utc(raw).replace(microsecond=0)
    return datetime.fromtimestamp(int(raw), tz=timezone.utc)


def decode_optional_datetime(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    return decode_datetime(raw)


def decode_optional_text(raw: Optional[str]) -> str:
    """Null text decodes to an empty string"""
    return raw if raw is not None else ""


# Parameter builders

def int64(value: int) -> TypedParam:
    return TypedParam(int(value), INT64)


def int32(value: int) -> TypedParam:
    value = int(value)
    if value < _INT32_MIN or value > _INT32_MAX:
        raise ValueError(f"{value} does not fit into Int32")
    return TypedParam(value, INT32)


def utf8(value: str) -> TypedParam:
    return TypedParam(str(value), UTF8)


def boolean(value: bool) -> TypedParam:
    return TypedParam(bool(value), BOOL)


def timestamp(value: datetime) -> TypedParam:
    return TypedParam(encode_datetime(value), DATETIME)


def optional_timestamp(value: Optional[datetime]) -> TypedParam:
    """Optional<Datetime>: None is bound as a typed null"""
    if value is None:
        return TypedParam(None, OPTIONAL_DATETIME)
    return TypedParam(encode_datetime(value), OPTIONAL_DATETIME)


def optional_text(value: Optional[str]) -> TypedParam:
    """Optional<Utf8>: a blank string is stored as null, not as ''"""
    if not value:
        return TypedParam(None, OPTIONAL_UTF8)
    return TypedParam(value, OPTIONAL_UTF8)
