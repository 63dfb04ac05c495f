"""API schemas for Catalog API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalog_api.catalog.models import MAX_LEVEL, MAX_NAME_LENGTH


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Any = Field(default_factory=list, description="Additional error details")
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_more: bool = Field(..., description="Whether there are more pages")


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        description="Display name; its slug becomes the last path segment",
        examples=["Running Shoes"],
    )
    description: str | None = Field(default=None, description="Free-text description")
    parent_id: str | None = Field(
        default=None, description="Parent category ID, omitted for a brand"
    )
    level: int = Field(
        default=0,
        ge=0,
        le=MAX_LEVEL,
        description="0 = brand, 1 = category, 2 = subcategory",
    )
    sort_order: int = Field(default=0, description="Position among siblings")


class CategoryUpdateRequest(BaseModel):
    """Partial category update.

    Only fields present in the request body are changed.
    """

    name: str | None = Field(
        default=None, min_length=1, max_length=MAX_NAME_LENGTH, description="New name"
    )
    description: str | None = Field(default=None, description="New description")
    parent_id: str | None = Field(default=None, description="New parent category ID")
    level: int | None = Field(default=None, ge=0, le=MAX_LEVEL, description="New level")
    sort_order: int | None = Field(default=None, description="New sort order")
    is_active: bool | None = Field(default=None, description="Visibility flag")


class CategoryResponse(BaseModel):
    """Category details."""

    id: str = Field(..., description="Category ID")
    name: str = Field(..., description="Display name")
    description: str | None = Field(default=None, description="Description")
    parent_id: str | None = Field(default=None, description="Parent category ID")
    level: int = Field(..., description="Tree level")
    path: str = Field(..., description="Materialized path, e.g. nike/shoes")
    ancestors: list[str] = Field(default_factory=list, description="Ancestor paths, root first")
    slug: str = Field(..., description="Last path segment")
    is_active: bool = Field(..., description="Visibility flag")
    sort_order: int = Field(..., description="Position among siblings")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class CategoryTreeNodeResponse(CategoryResponse):
    """Category with nested children."""

    children: list["CategoryTreeNodeResponse"] = Field(
        default_factory=list, description="Child categories"
    )


class CategoryListResponse(PaginatedResponse):
    """Paginated list of categories."""

    items: list[CategoryResponse] = Field(..., description="Categories on this page")


class CategoryTreeResponse(BaseModel):
    """Category forest."""

    roots: list[CategoryTreeNodeResponse] = Field(..., description="Root nodes")
    total: int = Field(..., description="Number of root nodes")
