"""
Table and column descriptor models built from catalog metadata
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dbmanager.models.enums import ColumnKind


class ColumnDescriptor(BaseModel):
    """One column as read from the catalog"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str = Field(description="Raw catalog data type, e.g. 'character varying'")
    kind: ColumnKind
    nullable: bool = True
    primary_key: bool = Field(False, alias="primaryKey")
    default_value: Optional[Any] = Field(None, alias="defaultValue")


class TableDescriptor(BaseModel):
    """
    Runtime description of a physical table.

    Columns are ordered by ordinal position. row_count is a point-in-time
    count taken when the descriptor was built, or None when it was
    built without one.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table_name: str = Field(alias="tableName")
    columns: List[ColumnDescriptor]
    row_count: Optional[int] = Field(None, alias="rowCount")

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def get_column(self, name: str) -> Optional[ColumnDescriptor]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    @property
    def primary_key_columns(self) -> List[ColumnDescriptor]:
        return [column for column in self.columns if column.primary_key]

    @property
    def text_columns(self) -> List[ColumnDescriptor]:
        return [column for column in self.columns if column.kind == ColumnKind.TEXT]
