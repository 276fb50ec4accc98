"""
Query parameter and paginated response models for record listing
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dbmanager.models.enums import SortOrder

DEFAULT_PAGE_LIMIT = 25
MAX_PAGE_LIMIT = 100


class QuerySpec(BaseModel):
    """Pagination, search, sort and filter parameters for one listing request"""
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT)
    search: Optional[str] = None
    sort_by: Optional[str] = Field(None, alias="sortBy")
    sort_order: SortOrder = Field(SortOrder.ASC, alias="sortOrder")
    filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, value: Any) -> SortOrder:
        """Anything other than asc/desc (any case) sorts ascending"""
        if isinstance(value, SortOrder):
            return value
        try:
            return SortOrder(str(value).strip().lower())
        except ValueError:
            return SortOrder.ASC

    @field_validator("filters", mode="before")
    @classmethod
    def default_filters(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class RecordPage(BaseModel):
    """One page of records plus totals, as returned by the listing endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    data: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")
