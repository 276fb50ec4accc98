"""
Column kind mapping and value coercion.

Every piece of type-dependent behavior (search eligibility, parameter
parsing, outbound serialization) dispatches on ColumnKind. Raw catalog type
strings are only ever interpreted by column_kind_for().
"""

import json
import re
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict
from uuid import UUID

from dbmanager.models.enums import ColumnKind
from dbmanager.models.table import ColumnDescriptor

_KIND_BY_TYPE: Dict[str, ColumnKind] = {
    # Boolean
    "boolean": ColumnKind.BOOLEAN,
    "bool": ColumnKind.BOOLEAN,
    # Integer
    "smallint": ColumnKind.INTEGER,
    "integer": ColumnKind.INTEGER,
    "bigint": ColumnKind.INTEGER,
    "int": ColumnKind.INTEGER,
    "int2": ColumnKind.INTEGER,
    "int4": ColumnKind.INTEGER,
    "int8": ColumnKind.INTEGER,
    "smallserial": ColumnKind.INTEGER,
    "serial": ColumnKind.INTEGER,
    "bigserial": ColumnKind.INTEGER,
    # Numeric
    "numeric": ColumnKind.NUMERIC,
    "decimal": ColumnKind.NUMERIC,
    "real": ColumnKind.NUMERIC,
    "double precision": ColumnKind.NUMERIC,
    "float4": ColumnKind.NUMERIC,
    "float8": ColumnKind.NUMERIC,
    # Text
    "text": ColumnKind.TEXT,
    "character varying": ColumnKind.TEXT,
    "varchar": ColumnKind.TEXT,
    "character": ColumnKind.TEXT,
    "char": ColumnKind.TEXT,
    "bpchar": ColumnKind.TEXT,
    "citext": ColumnKind.TEXT,
    "name": ColumnKind.TEXT,
    # JSON
    "json": ColumnKind.JSON,
    "jsonb": ColumnKind.JSON,
    # Date/Time
    "timestamp without time zone": ColumnKind.TIMESTAMP,
    "timestamp with time zone": ColumnKind.TIMESTAMP,
    "timestamp": ColumnKind.TIMESTAMP,
    "timestamptz": ColumnKind.TIMESTAMP,
    "date": ColumnKind.TIMESTAMP,
    "time without time zone": ColumnKind.TIMESTAMP,
    "time with time zone": ColumnKind.TIMESTAMP,
    "time": ColumnKind.TIMESTAMP,
    "timetz": ColumnKind.TIMESTAMP,
}

_FLOAT_TYPES = frozenset({"real", "double precision", "float4", "float8"})
_TZ_AWARE_TYPES = frozenset({"timestamp with time zone", "timestamptz"})
_TIME_TYPES = frozenset({"time without time zone", "time with time zone", "time", "timetz"})

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "off", "0"})

_TYPE_MODIFIER_RE = re.compile(r"\(.*?\)")


def normalize_type_name(raw_type: str) -> str:
    """Lowercase a catalog type and drop length/precision modifiers"""
    return " ".join(_TYPE_MODIFIER_RE.sub("", raw_type or "").lower().split())


def column_kind_for(raw_type: str) -> ColumnKind:
    """Map a raw catalog type string to its ColumnKind"""
    return _KIND_BY_TYPE.get(normalize_type_name(raw_type), ColumnKind.OTHER)


def is_searchable(column: ColumnDescriptor) -> bool:
    return column.kind == ColumnKind.TEXT


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z' for UTC"""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _coerce_boolean(raw_type: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce_integer(raw_type: str, value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("booleans are not integers")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"not an integer: {value!r}")


def _coerce_numeric(raw_type: str, value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise TypeError(f"not a number: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    if normalize_type_name(raw_type) in _FLOAT_TYPES:
        return float(value)
    return Decimal(str(value))


def _coerce_text(raw_type: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise TypeError(f"not a text value: {value!r}")
    return str(value)


def _coerce_json(raw_type: str, value: Any) -> Any:
    # Strings are JSON documents; anything else is already a decoded value
    if isinstance(value, str):
        return json.loads(value)
    return value


def _coerce_timestamp(raw_type: str, value: Any) -> Any:
    type_name = normalize_type_name(raw_type)

    if type_name in _TIME_TYPES:
        if isinstance(value, time):
            return value
        if isinstance(value, str):
            return time.fromisoformat(value.strip())
        raise TypeError(f"not a time: {value!r}")

    if isinstance(value, str):
        value = parse_timestamp(value)
    elif isinstance(value, date) and not isinstance(value, datetime):
        if type_name == "date":
            return value
        value = datetime(value.year, value.month, value.day)
    elif not isinstance(value, datetime):
        raise TypeError(f"not a timestamp: {value!r}")

    if type_name == "date":
        return value.date()
    if type_name in _TZ_AWARE_TYPES:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value
    # Timestamps without time zone are stored as naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _coerce_other(raw_type: str, value: Any) -> Any:
    if normalize_type_name(raw_type) == "uuid" and not isinstance(value, UUID):
        return UUID(str(value).strip())
    return value


_COERCERS: Dict[ColumnKind, Callable[[str, Any], Any]] = {
    ColumnKind.BOOLEAN: _coerce_boolean,
    ColumnKind.INTEGER: _coerce_integer,
    ColumnKind.NUMERIC: _coerce_numeric,
    ColumnKind.TEXT: _coerce_text,
    ColumnKind.JSON: _coerce_json,
    ColumnKind.TIMESTAMP: _coerce_timestamp,
    ColumnKind.OTHER: _coerce_other,
}


def coerce_value(column: ColumnDescriptor, value: Any) -> Any:
    """
    Convert an untyped inbound value into what the driver expects for the column.

    Raises:
        ValueError: if the value cannot represent the column's kind
    """
    if value is None:
        return None
    try:
        return _COERCERS[column.kind](column.type, value)
    except (ValueError, TypeError, ArithmeticError) as e:
        raise ValueError(
            f"Invalid {column.kind.value} value for column '{column.name}': {value!r}"
        ) from e


def serialize_value(value: Any) -> Any:
    """Convert driver values that JSON cannot carry natively"""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


def serialize_record(row: Dict[str, Any]) -> Dict[str, Any]:
    return {key: serialize_value(value) for key, value in row.items()}
