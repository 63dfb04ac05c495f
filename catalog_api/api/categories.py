"""Category API endpoints.

Thin HTTP surface over CategoryHierarchyService. Domain errors raised by
the service are turned into error responses by the application's
exception handlers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.api.schemas import (
    CategoryCreateRequest,
    CategoryListResponse,
    CategoryResponse,
    CategoryTreeNodeResponse,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    ErrorResponse,
)
from catalog_api.catalog.models import MAX_LEVEL, Category
from catalog_api.catalog.query import CategoryTreeNode
from catalog_api.catalog.service import CategoryHierarchyService, get_category_service
from catalog_api.infrastructure.config import settings
from catalog_api.infrastructure.database import get_session

router = APIRouter(prefix="/categories", tags=["Categories"])


def get_service(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CategoryHierarchyService:
    """Get category service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_category_service(session, request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def category_to_response(category: Category) -> CategoryResponse:
    """Convert Category model to response schema."""
    return CategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        parent_id=category.parent_id,
        level=category.level,
        path=category.path,
        ancestors=list(category.ancestors or []),
        slug=category.slug,
        is_active=category.is_active,
        sort_order=category.sort_order,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def node_to_response(node: CategoryTreeNode) -> CategoryTreeNodeResponse:
    """Convert a tree node and its children to response schema."""
    return CategoryTreeNodeResponse(
        **category_to_response(node.category).model_dump(),
        children=[node_to_response(child) for child in node.children],
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=CategoryListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List categories",
    description="List live categories with optional filters and text search.",
)
async def list_categories(
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(
        default=settings.categories_default_page_size,
        ge=1,
        le=settings.categories_max_page_size,
        description="Items per page",
    ),
    level: int | None = Query(default=None, ge=0, le=MAX_LEVEL, description="Filter by level"),
    parent_id: str | None = Query(default=None, description="Filter by parent"),
    is_active: bool | None = Query(default=None, description="Filter by active flag"),
    search: str | None = Query(default=None, description="Search name and description"),
) -> CategoryListResponse:
    """List categories.

    With a search term, the closest name matches come first.

    Args:
        service: Category service.
        page: Page number.
        limit: Items per page.
        level: Optional level filter.
        parent_id: Optional parent filter.
        is_active: Optional active flag filter.
        search: Optional search term.

    Returns:
        Paginated categories.
    """
    result = await service.get_categories(
        page=page,
        limit=limit,
        level=level,
        parent_id=parent_id,
        is_active=is_active,
        search=search,
    )

    return CategoryListResponse(
        items=[category_to_response(c) for c in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_more=result.has_next,
    )


@router.get(
    "/tree",
    response_model=CategoryTreeResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Get category tree",
    description="Get the nested category tree starting at a level.",
)
async def get_category_tree(
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
    root_level: int = Query(default=0, description="Level of the returned roots"),
    include_inactive: bool = Query(default=False, description="Include inactive categories"),
) -> CategoryTreeResponse:
    """Get the category tree.

    Args:
        service: Category service.
        root_level: Level of the returned roots.
        include_inactive: Whether inactive categories are included.

    Returns:
        Root nodes with nested children.
    """
    forest = await service.get_category_tree(root_level, include_inactive)
    return CategoryTreeResponse(
        roots=[node_to_response(node) for node in forest],
        total=len(forest),
    )


@router.get(
    "/by-path/{path:path}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get category by path",
    description="Get a category by its materialized path, e.g. nike/shoes.",
)
async def get_category_by_path(
    path: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> CategoryResponse:
    """Get a category by materialized path."""
    return category_to_response(await service.get_category_by_path(path))


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get category",
    description="Get a category by ID.",
)
async def get_category(
    category_id: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> CategoryResponse:
    """Get a category by ID."""
    return category_to_response(await service.get_category(category_id))


@router.get(
    "/{category_id}/ancestors",
    response_model=list[CategoryResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get ancestors",
    description="Get the live ancestors of a category, root first.",
)
async def get_category_ancestors(
    category_id: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> list[CategoryResponse]:
    ancestors = await service.get_category_ancestors(category_id)
    return [category_to_response(c) for c in ancestors]


@router.get(
    "/{category_id}/descendants",
    response_model=list[CategoryResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get descendants",
    description="Get every live category below a category.",
)
async def get_category_descendants(
    category_id: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> list[CategoryResponse]:
    descendants = await service.get_category_descendants(category_id)
    return [category_to_response(c) for c in descendants]


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create category",
    description="Create a category under an optional parent.",
)
async def create_category(
    request: CategoryCreateRequest,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> CategoryResponse:
    """Create a category.

    The path is derived from the parent's path and the name's slug.

    Args:
        request: Category creation request.
        service: Category service.

    Returns:
        Created category.
    """
    category = await service.create_category(
        name=request.name,
        description=request.description,
        parent_id=request.parent_id,
        level=request.level,
        sort_order=request.sort_order,
    )
    return category_to_response(category)


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update category",
    description="Update a category. Renames and moves carry the whole subtree along.",
)
async def update_category(
    category_id: str,
    request: CategoryUpdateRequest,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> CategoryResponse:
    """Update a category.

    Args:
        category_id: Category identifier.
        request: Fields to change.
        service: Category service.

    Returns:
        Updated category.
    """
    category = await service.update_category(
        category_id,
        request.model_dump(exclude_unset=True),
    )
    return category_to_response(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete category",
    description="Soft-delete a category with no subcategories and no products.",
)
async def delete_category(
    category_id: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> Response:
    """Soft-delete a category."""
    await service.delete_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{category_id}/restore",
    response_model=CategoryResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Restore category",
    description="Restore a soft-deleted category under its current parent.",
)
async def restore_category(
    category_id: str,
    service: Annotated[CategoryHierarchyService, Depends(get_service)],
) -> CategoryResponse:
    """Restore a soft-deleted category."""
    return category_to_response(await service.restore_category(category_id))
