"""
Error taxonomy for catalog reads, query compilation and statement execution
"""

from typing import Any, Dict, Optional


class DatabaseManagerError(Exception):
    """Base error carrying an HTTP-facing type, status and diagnostic context"""

    error_type = "DATABASE_MANAGER_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        table: Optional[str] = None,
        operation: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.table = table
        self.operation = operation

    def annotate(self, table: Optional[str] = None, operation: Optional[str] = None) -> "DatabaseManagerError":
        """Attach table/operation context without overwriting context set closer to the failure"""
        if self.table is None:
            self.table = table
        if self.operation is None:
            self.operation = operation
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "error": self.error_type,
            "message": self.message,
        }
        if self.detail:
            payload["detail"] = self.detail
        if self.table:
            payload["table"] = self.table
        if self.operation:
            payload["operation"] = self.operation
        return payload

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class CatalogUnavailable(DatabaseManagerError):
    """Connectivity failure or failed catalog read"""
    error_type = "CATALOG_UNAVAILABLE"
    status_code = 503


class TableNotFound(DatabaseManagerError):
    error_type = "TABLE_NOT_FOUND"
    status_code = 404

    def __init__(self, table: str, operation: Optional[str] = None):
        super().__init__(f"Table not found: {table}", table=table, operation=operation)


class RecordNotFound(DatabaseManagerError):
    error_type = "RECORD_NOT_FOUND"
    status_code = 404


class InvalidRequest(DatabaseManagerError):
    """Client-side mistake detected before any SQL is compiled"""
    error_type = "INVALID_REQUEST"
    status_code = 400


class InvalidRecord(InvalidRequest):
    error_type = "INVALID_RECORD"


class InvalidQuery(InvalidRequest):
    error_type = "INVALID_QUERY"


class InvalidRecordId(InvalidQuery):
    """Record id that the primary key column cannot hold; no row can match it"""
    error_type = "INVALID_RECORD_ID"


class UnsupportedTable(DatabaseManagerError):
    """Table shape the generic engine cannot address, e.g. a composite primary key"""
    error_type = "UNSUPPORTED_TABLE"
    status_code = 422


class ExecutionFailure(DatabaseManagerError):
    """Statement rejected by the database"""
    error_type = "EXECUTION_FAILURE"
    status_code = 500


class ConstraintViolation(ExecutionFailure):
    error_type = "CONSTRAINT_VIOLATION"
    status_code = 409


class StatementTimeout(ExecutionFailure):
    """Statement exceeded the command timeout; the connection itself is healthy"""
    error_type = "STATEMENT_TIMEOUT"
    status_code = 504
