"""Read-side category queries: paginated listing and tree assembly."""

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from catalog_api.catalog.models import MAX_LEVEL, Category
from catalog_api.catalog.repository import CategoryRepository
from catalog_api.domain.exceptions import InvalidHierarchyError

T = TypeVar("T")


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: List of items.
        total: Total count.
        page: Current page.
        page_size: Items per page.
    """

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 1


@dataclass
class CategoryTreeNode:
    """A category with its materialized children."""

    category: Category
    children: list["CategoryTreeNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a nested dictionary."""
        return {
            **self.category.to_dict(),
            "children": [child.to_dict() for child in self.children],
        }


class CategoryTreeQuery:
    """Listing and tree queries over the flat category table.

    Example usage:
        query = CategoryTreeQuery(CategoryRepository(session))
        page = await query.get_categories_paginated(page=2, limit=20, level=1)
        forest = await query.build_category_tree()
    """

    def __init__(self, repository: CategoryRepository) -> None:
        """Initialize query helper.

        Args:
            repository: Category repository.
        """
        self.repository = repository

    async def get_categories_paginated(
        self,
        page: int = 1,
        limit: int = 50,
        level: int | None = None,
        parent_id: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> PaginatedResult[Category]:
        """List live categories with filters and pagination.

        Args:
            page: Page number (1-indexed).
            limit: Items per page.
            level: Filter by level.
            parent_id: Filter by direct parent.
            is_active: Filter by active flag.
            search: Text search over name and description; switches
                ordering to relevance.

        Returns:
            Paginated categories.
        """
        page = max(page, 1)
        limit = max(limit, 1)

        categories = await self.repository.find_all(
            level=level,
            parent_id=parent_id,
            is_active=is_active,
            search=search,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = await self.repository.count(
            level=level,
            parent_id=parent_id,
            is_active=is_active,
            search=search,
        )

        return PaginatedResult(
            items=list(categories),
            total=total,
            page=page,
            page_size=limit,
        )

    async def build_category_tree(
        self,
        root_level: int = 0,
        include_inactive: bool = False,
    ) -> list[CategoryTreeNode]:
        """Assemble the category forest starting at root_level.

        Issues one query per level: the roots first, then the children
        of every node on the previous level at once. Inactive
        categories are skipped together with their subtrees unless
        include_inactive is set.

        Args:
            root_level: Level whose categories become the tree roots.
            include_inactive: Whether to include inactive categories.

        Returns:
            Root nodes, each with nested children.
        """
        if root_level < 0 or root_level > MAX_LEVEL:
            raise InvalidHierarchyError(f"Level must be a number between 0 and {MAX_LEVEL}")

        roots = await self.repository.find_at_level(root_level, include_inactive)
        forest = [CategoryTreeNode(category=c) for c in roots]

        current = forest
        for _ in range(root_level, MAX_LEVEL):
            if not current:
                break

            by_id = {node.category.id: node for node in current}
            children = await self.repository.find_children(list(by_id), include_inactive)

            next_level: list[CategoryTreeNode] = []
            for child in children:
                node = CategoryTreeNode(category=child)
                by_id[child.parent_id].children.append(node)
                next_level.append(node)
            current = next_level

        return forest
