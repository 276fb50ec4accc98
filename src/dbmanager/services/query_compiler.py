"""
Query compiler - turns table descriptors plus untyped request parameters into
parameterized SQL.

Identifiers are only interpolated after they have been checked against a
descriptor built from the catalog, and always through quote_identifier().
Values are never interpolated; they travel as asyncpg positional
parameters ($1, $2, ...).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Type

from dbmanager.database.errors import (
    InvalidQuery,
    InvalidRecord,
    InvalidRecordId,
    InvalidRequest,
    UnsupportedTable,
)
from dbmanager.models.enums import FilterMarker
from dbmanager.models.query import QuerySpec
from dbmanager.models.table import ColumnDescriptor, TableDescriptor
from dbmanager.services.column_types import coerce_value

logger = logging.getLogger(__name__)

LIKE_ESCAPE_CHARS = ("\\", "%", "_")


@dataclass
class CompiledStatement:
    """A single SQL statement with its bound parameters"""
    sql: str
    parameters: List[Any] = field(default_factory=list)


@dataclass
class CompiledSelect:
    """Paginated data query plus its count-only counterpart sharing one WHERE clause"""
    sql: str
    count_sql: str
    parameters: List[Any]
    count_parameters: List[Any]


class _Parameters:
    """Collects bound values and hands out their positional placeholders"""

    def __init__(self):
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def quote_identifier(name: str) -> str:
    """Quote an identifier that has already been verified against the catalog"""
    return '"' + name.replace('"', '""') + '"'


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches as a literal substring"""
    for char in LIKE_ESCAPE_CHARS:
        term = term.replace(char, "\\" + char)
    return term


def _require_column(
    descriptor: TableDescriptor,
    name: str,
    error_cls: Type[InvalidRequest],
    operation: str
) -> ColumnDescriptor:
    column = descriptor.get_column(name)
    if column is None:
        raise error_cls(
            f"Unknown column '{name}' for table '{descriptor.table_name}'",
            table=descriptor.table_name,
            operation=operation
        )
    return column


def _coerce(
    column: ColumnDescriptor,
    value: Any,
    error_cls: Type[InvalidRequest],
    table_name: str,
    operation: str
) -> Any:
    try:
        return coerce_value(column, value)
    except ValueError as e:
        raise error_cls(str(e), table=table_name, operation=operation) from e


def _require_record(descriptor: TableDescriptor, record: Dict[str, Any], operation: str):
    if not record:
        raise InvalidRecord(
            "Record must contain at least one column",
            table=descriptor.table_name,
            operation=operation
        )


def _primary_key_predicate(
    descriptor: TableDescriptor,
    primary_key: str,
    record_id: Any,
    params: _Parameters,
    operation: str
) -> str:
    column = descriptor.get_column(primary_key)
    if column is None:
        raise UnsupportedTable(
            f"Primary key column '{primary_key}' does not exist on table '{descriptor.table_name}'",
            table=descriptor.table_name,
            operation=operation
        )
    value = _coerce(column, record_id, InvalidRecordId, descriptor.table_name, operation)
    return f"{quote_identifier(column.name)} = {params.add(value)}"


def _build_where_clause(descriptor: TableDescriptor, spec: QuerySpec, params: _Parameters) -> str:
    """Search disjunction AND filter conjunction; empty string when neither applies"""
    conditions = []

    if spec.search:
        text_columns = descriptor.text_columns
        if text_columns:
            placeholder = params.add(f"%{escape_like(spec.search)}%")
            matches = [f"{quote_identifier(column.name)} ILIKE {placeholder}" for column in text_columns]
            conditions.append(f"({' OR '.join(matches)})")
        else:
            logger.debug(f"Ignoring search on {descriptor.table_name}: no text columns")

    for name, value in spec.filters.items():
        column = _require_column(descriptor, name, InvalidQuery, "query")
        quoted = quote_identifier(column.name)

        if value is None or (isinstance(value, str) and value == ""):
            continue
        if value == FilterMarker.IS_NULL.value:
            conditions.append(f"{quoted} IS NULL")
        elif value == FilterMarker.IS_NOT_NULL.value:
            conditions.append(f"{quoted} IS NOT NULL")
        else:
            bound = _coerce(column, value, InvalidQuery, descriptor.table_name, "query")
            conditions.append(f"{quoted} = {params.add(bound)}")

    if not conditions:
        return ""
    return " WHERE " + " AND ".join(conditions)


def compile_count(table_name: str) -> CompiledStatement:
    """Unfiltered row count for a table name confirmed by the catalog"""
    return CompiledStatement(sql=f"SELECT COUNT(*) AS count FROM {quote_identifier(table_name)}")


def compile_select(descriptor: TableDescriptor, spec: QuerySpec) -> CompiledSelect:
    """
    Compile a paginated listing query and its count query

    Args:
        descriptor: Catalog-derived description of the table
        spec: Pagination, search, sort and filter parameters

    Returns:
        CompiledSelect whose count query shares the data query's WHERE clause

    Raises:
        InvalidQuery: on an unknown sort/filter column or an uncoercible filter value
    """
    params = _Parameters()
    table = quote_identifier(descriptor.table_name)
    where_sql = _build_where_clause(descriptor, spec, params)

    count_sql = f"SELECT COUNT(*) AS count FROM {table}{where_sql}"
    count_parameters = list(params.values)

    order_sql = ""
    if spec.sort_by:
        column = _require_column(descriptor, spec.sort_by, InvalidQuery, "query")
        order_sql = f" ORDER BY {quote_identifier(column.name)} {spec.sort_order.sql}"

    limit_placeholder = params.add(spec.limit)
    offset_placeholder = params.add(spec.offset)
    sql = f"SELECT * FROM {table}{where_sql}{order_sql} LIMIT {limit_placeholder} OFFSET {offset_placeholder}"

    return CompiledSelect(
        sql=sql,
        count_sql=count_sql,
        parameters=params.values,
        count_parameters=count_parameters
    )


def compile_get(descriptor: TableDescriptor, primary_key: str, record_id: Any) -> CompiledStatement:
    params = _Parameters()
    predicate = _primary_key_predicate(descriptor, primary_key, record_id, params, "get")
    sql = f"SELECT * FROM {quote_identifier(descriptor.table_name)} WHERE {predicate} LIMIT 1"
    return CompiledStatement(sql=sql, parameters=params.values)


def compile_insert(descriptor: TableDescriptor, record: Dict[str, Any]) -> CompiledStatement:
    """
    Compile an INSERT of every key in the record, returning the full inserted row

    Raises:
        InvalidRecord: if the record is empty, names an unknown column or
            carries a value the column cannot hold
    """
    _require_record(descriptor, record, "insert")

    params = _Parameters()
    columns = []
    placeholders = []
    for name, value in record.items():
        column = _require_column(descriptor, name, InvalidRecord, "insert")
        columns.append(quote_identifier(column.name))
        placeholders.append(params.add(_coerce(column, value, InvalidRecord, descriptor.table_name, "insert")))

    sql = (
        f"INSERT INTO {quote_identifier(descriptor.table_name)} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) RETURNING *"
    )
    return CompiledStatement(sql=sql, parameters=params.values)


def compile_update(
    descriptor: TableDescriptor,
    primary_key: str,
    record_id: Any,
    record: Dict[str, Any]
) -> CompiledStatement:
    """
    Compile an UPDATE of the submitted keys only, restricted to one primary key value

    The id is bound as the last parameter.
    """
    _require_record(descriptor, record, "update")

    params = _Parameters()
    assignments = []
    for name, value in record.items():
        column = _require_column(descriptor, name, InvalidRecord, "update")
        bound = _coerce(column, value, InvalidRecord, descriptor.table_name, "update")
        assignments.append(f"{quote_identifier(column.name)} = {params.add(bound)}")

    predicate = _primary_key_predicate(descriptor, primary_key, record_id, params, "update")
    sql = (
        f"UPDATE {quote_identifier(descriptor.table_name)} SET {', '.join(assignments)} "
        f"WHERE {predicate} RETURNING *"
    )
    return CompiledStatement(sql=sql, parameters=params.values)


def compile_delete(descriptor: TableDescriptor, primary_key: str, record_id: Any) -> CompiledStatement:
    params = _Parameters()
    predicate = _primary_key_predicate(descriptor, primary_key, record_id, params, "delete")
    sql = f"DELETE FROM {quote_identifier(descriptor.table_name)} WHERE {predicate}"
    return CompiledStatement(sql=sql, parameters=params.values)
