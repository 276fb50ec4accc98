"""
Enums used across the database manager
"""

from enum import Enum


class ColumnKind(str, Enum):
    """Closed set of column kinds that type-dependent behavior dispatches on"""
    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMERIC = "numeric"
    TEXT = "text"
    JSON = "json"
    TIMESTAMP = "timestamp"
    OTHER = "other"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def sql(self) -> str:
        return self.value.upper()


class FilterMarker(str, Enum):
    """Sentinel filter values that compile to null tests instead of equality"""
    IS_NULL = "$null"
    IS_NOT_NULL = "$notnull"
