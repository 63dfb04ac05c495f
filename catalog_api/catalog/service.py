"""Category hierarchy service.

Orchestrates hierarchy validation, path maintenance and persistence for
category create, update, delete and restore. Each mutating operation
runs in one session transaction that it commits or rolls back itself,
so a rename or move and the rewrite of its subtree land together or
not at all.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.catalog.hierarchy import HierarchyPathManager, join_path
from catalog_api.catalog.models import MAX_NAME_LENGTH, Category
from catalog_api.catalog.query import CategoryTreeNode, CategoryTreeQuery, PaginatedResult
from catalog_api.catalog.repository import CategoryRepository, ProductRepository
from catalog_api.catalog.slug import slugify
from catalog_api.catalog.validator import HierarchyValidator, is_valid_category_id
from catalog_api.domain.exceptions import (
    CategoryConflictError,
    CategoryError,
    CategoryInUseError,
    CategoryNotDeletedError,
    CategoryNotFoundError,
    InvalidHierarchyError,
    InvalidSlugError,
)
from catalog_api.domain.validation import ErrorCollector, ValidationResult
from catalog_api.infrastructure.config import settings

logger = structlog.get_logger()

# Changing any of these re-runs hierarchy validation
HIERARCHY_FIELDS = frozenset({"name", "parent_id", "level"})
UPDATABLE_FIELDS = frozenset({"name", "description", "parent_id", "level", "sort_order", "is_active"})
NULLABLE_FIELDS = frozenset({"description", "parent_id"})

CYCLE_ERROR = "Cannot set a descendant category as parent (would create cycle)"

# serialization_failure, deadlock_detected
CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def is_write_conflict(error: SQLAlchemyError) -> bool:
    """Tell whether a store error means a concurrent write won.

    Covers unique index violations and the serialization failures that
    REPEATABLE READ and SERIALIZABLE transactions raise when another
    transaction updated the same rows first.
    """
    if isinstance(error, IntegrityError):
        return True
    if not isinstance(error, DBAPIError):
        return False
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    return sqlstate in CONFLICT_SQLSTATES


class CategoryHierarchyService:
    """Application service for the category hierarchy.

    The only entry point other layers use for category writes.

    Example usage:
        async with async_session_factory() as session:
            service = CategoryHierarchyService(session)
            nike = await service.create_category("Nike", level=0)
            shoes = await service.create_category("Shoes", parent_id=nike.id, level=1)
            await service.update_category(nike.id, {"name": "Nike Inc"})
    """

    def __init__(
        self,
        session: AsyncSession,
        product_repository: ProductRepository | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
            product_repository: Source of product reference counts.
            request_id: Request ID for correlation.
        """
        self.session = session
        self.repository = CategoryRepository(session)
        self.products = product_repository or ProductRepository(session)
        self.validator = HierarchyValidator(self.repository)
        self.hierarchy = HierarchyPathManager(self.repository)
        self.query = CategoryTreeQuery(self.repository)
        self.request_id = request_id

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_category_hierarchy(
        self,
        name: str | None,
        parent_id: str | None,
        level: int,
        category_id: str | None = None,
    ) -> ValidationResult:
        """Run every hierarchy rule and collect all failures.

        Args:
            name: Proposed name.
            parent_id: Proposed parent ID.
            level: Proposed level.
            category_id: Set when validating an update of an existing
                category; enables the cycle and level-change checks and
                excludes the category from the path collision check.

        Returns:
            ValidationResult listing every problem found.
        """
        collector = ErrorCollector()

        try:
            collector.add_if(
                name is not None and len(name) > MAX_NAME_LENGTH,
                f"Name must be at most {MAX_NAME_LENGTH} characters",
            )

            slug = None
            try:
                slug = slugify(name)
            except InvalidSlugError as e:
                collector.add(e.message)

            collector.add_many(self.validator.validate_level(level))
            collector.add_many(self.validator.validate_root_constraints(level, parent_id))

            parent = None
            if parent_id is not None:
                parent_validation = await self.validator.validate_parent_exists(parent_id)
                if not parent_validation.valid:
                    collector.add(parent_validation.error or "Parent category not found")
                else:
                    parent = parent_validation.parent
                    collector.add_many(
                        self.validator.validate_parent_level(parent.level, level)
                    )

            if slug is not None and (parent_id is None or parent is not None):
                proposed_path = join_path(parent.path if parent else None, slug)
                if await self.hierarchy.path_exists(proposed_path, category_id):
                    collector.add(f'Path "{proposed_path}" already exists')

            if category_id is not None:
                if parent_id is not None and await self.hierarchy.find_cycle(category_id, parent_id):
                    collector.add(CYCLE_ERROR)
                if await self._level_change_strands_children(category_id, level):
                    collector.add("Cannot change the level of a category that has subcategories")

        except CategoryError as e:
            collector.add(e.message)

        return collector.to_result()

    async def _level_change_strands_children(self, category_id: str, level: int) -> bool:
        """Check whether moving to another level would break child levels."""
        category = await self.repository.get_by_id(category_id)
        if category is None or category.level == level:
            return False
        return bool(await self.repository.find_descendants(category.path))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        parent_id: str | None = None,
        level: int = 0,
        sort_order: int | None = 0,
    ) -> Category:
        """Create a category with its path and ancestors.

        Args:
            name: Display name.
            description: Optional description.
            parent_id: Parent category ID, None for a root.
            level: Tree level (0-2).
            sort_order: Sibling sort key.

        Returns:
            The persisted category.

        Raises:
            InvalidHierarchyError: If any hierarchy rule fails.
            CategoryConflictError: If a concurrent write claimed the path.
            CategoryError: If the store fails.
        """
        async with self._transaction("create", name=name, parent_id=parent_id):
            validation = await self.validate_category_hierarchy(name, parent_id, level)
            if not validation.valid:
                raise InvalidHierarchyError(validation.errors)

            path = await self.hierarchy.generate_path(name, parent_id)
            ancestors = await self.hierarchy.generate_ancestors(parent_id)

            category = await self.repository.add(
                Category(
                    name=name,
                    description=description,
                    parent_id=parent_id,
                    level=level,
                    path=path,
                    ancestors=ancestors,
                    sort_order=sort_order or 0,
                    is_active=True,
                )
            )

        logger.info(
            "Category created",
            category_id=category.id,
            path=category.path,
            level=category.level,
            request_id=self.request_id,
        )

        return category

    async def update_category(self, category_id: str, changes: dict[str, Any]) -> Category:
        """Apply a partial update, keeping the subtree consistent.

        A change of name, parent or level is re-validated against the
        merged view. If the path changes, every descendant's path and
        ancestors are rewritten before the category's own path.

        Args:
            category_id: Category ID.
            changes: Fields to change; keys absent are left untouched.

        Returns:
            The updated category.

        Raises:
            CategoryNotFoundError: If no live category matches.
            InvalidHierarchyError: If the merged view breaks a rule.
            CategoryConflictError: If a concurrent write claimed the path.
            CategoryError: If the ID is malformed or the store fails.
        """
        self._check_changes(changes)
        self._check_id(category_id)

        changes = dict(changes)

        async with self._transaction("update", category_id=category_id):
            category = await self.repository.get_by_id(category_id)
            if category is None:
                raise CategoryNotFoundError(category_id)

            old_path = category.path
            rewritten = 0

            if HIERARCHY_FIELDS & changes.keys():
                name = changes.get("name", category.name)
                parent_id = changes["parent_id"] if "parent_id" in changes else category.parent_id
                level = changes.get("level", category.level)

                validation = await self.validate_category_hierarchy(
                    name, parent_id, level, category_id=category.id
                )
                if not validation.valid:
                    raise InvalidHierarchyError(validation.errors)

                parent_changed = "parent_id" in changes and parent_id != category.parent_id
                new_ancestors = (
                    await self.hierarchy.generate_ancestors(parent_id) if parent_changed else None
                )

                if "name" in changes or parent_changed:
                    new_path = await self.hierarchy.generate_path(name, parent_id)
                    if new_path != category.path:
                        rewritten = await self.hierarchy.update_descendant_paths(
                            category.id, new_path, new_ancestors
                        )
                        changes["path"] = new_path

                if parent_changed:
                    changes["ancestors"] = new_ancestors

            for field, value in changes.items():
                setattr(category, field, value)

            await self.repository.flush()

        logger.info(
            "Category updated",
            category_id=category.id,
            fields=sorted(changes),
            old_path=old_path,
            path=category.path,
            descendants_rewritten=rewritten,
            request_id=self.request_id,
        )

        return category

    async def delete_category(self, category_id: str) -> None:
        """Soft-delete a category that nothing depends on.

        Args:
            category_id: Category ID.

        Raises:
            CategoryNotFoundError: If no live category matches.
            CategoryInUseError: If it has live subcategories or products
                reference it.
        """
        self._check_id(category_id)

        async with self._transaction("delete", category_id=category_id):
            category = await self.repository.get_by_id(category_id)
            if category is None:
                raise CategoryNotFoundError(category_id)

            descendants = await self.repository.find_descendants(category.path)
            if descendants:
                raise CategoryInUseError(
                    category_id,
                    f"Cannot delete category with {len(descendants)} subcategories. "
                    "Delete subcategories first.",
                    subcategories=len(descendants),
                )

            product_count = await self.products.count_by_category(category_id)
            if product_count > 0:
                raise CategoryInUseError(
                    category_id,
                    f"Cannot delete category. {product_count} products are using this category.",
                    products=product_count,
                )

            category.deleted_at = datetime.now(timezone.utc)
            await self.repository.flush()

        logger.info(
            "Category deleted",
            category_id=category_id,
            path=category.path,
            request_id=self.request_id,
        )

    async def restore_category(self, category_id: str) -> Category:
        """Bring a soft-deleted category back.

        The hierarchy is re-validated against the current parent and the
        path and ancestors are recomputed, since the parent may have been
        renamed or moved, and the old path may have been reused, while
        this category was deleted.

        Args:
            category_id: Category ID.

        Returns:
            The restored category.

        Raises:
            CategoryNotDeletedError: If no soft-deleted category matches.
            InvalidHierarchyError: If the category no longer fits the tree.
        """
        self._check_id(category_id)

        async with self._transaction("restore", category_id=category_id):
            category = await self.repository.get_deleted(category_id)
            if category is None:
                raise CategoryNotDeletedError(category_id)

            validation = await self.validate_category_hierarchy(
                category.name, category.parent_id, category.level
            )
            if not validation.valid:
                raise InvalidHierarchyError(validation.errors)

            category.path = await self.hierarchy.generate_path(category.name, category.parent_id)
            category.ancestors = await self.hierarchy.generate_ancestors(category.parent_id)
            category.deleted_at = None
            await self.repository.flush()

        logger.info(
            "Category restored",
            category_id=category_id,
            path=category.path,
            request_id=self.request_id,
        )

        return category

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_category(self, category_id: str) -> Category:
        """Get a live category by ID.

        Raises:
            CategoryNotFoundError: If no live category matches.
        """
        self._check_id(category_id)
        category = await self.repository.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def get_category_by_path(self, path: str) -> Category:
        """Get a live category by its materialized path.

        Raises:
            CategoryNotFoundError: If no live category has this path.
        """
        normalized = path.strip("/").lower()
        category = await self.repository.get_by_path(normalized)
        if category is None:
            raise CategoryNotFoundError(path=normalized)
        return category

    async def get_categories(
        self,
        page: int = 1,
        limit: int | None = None,
        level: int | None = None,
        parent_id: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> PaginatedResult[Category]:
        """List categories, see CategoryTreeQuery.get_categories_paginated."""
        return await self.query.get_categories_paginated(
            page=page,
            limit=limit or settings.categories_default_page_size,
            level=level,
            parent_id=parent_id,
            is_active=is_active,
            search=search,
        )

    async def get_category_tree(
        self,
        root_level: int = 0,
        include_inactive: bool = False,
    ) -> list[CategoryTreeNode]:
        """Build the category tree, see CategoryTreeQuery.build_category_tree."""
        return await self.query.build_category_tree(root_level, include_inactive)

    async def get_category_ancestors(self, category_id: str) -> list[Category]:
        return await self.hierarchy.get_ancestors(category_id)

    async def get_category_descendants(self, category_id: str) -> list[Category]:
        return await self.hierarchy.get_descendants(category_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, operation: str, **context: Any) -> AsyncIterator[None]:
        """Commit the session on success, roll back on any failure.

        Domain errors pass through. Lost races on the unique path index
        or on concurrently updated rows become CategoryConflictError;
        other store errors are wrapped with the operation name.
        """
        try:
            yield
            await self.session.commit()
        except CategoryError as e:
            await self.session.rollback()
            logger.info(
                "Category operation rejected",
                operation=operation,
                error_code=e.error_code,
                error=e.message,
                request_id=self.request_id,
                **context,
            )
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            if not is_write_conflict(e):
                logger.error(
                    "Category store failure",
                    operation=operation,
                    error=str(e),
                    request_id=self.request_id,
                    **context,
                )
                raise CategoryError(
                    f"Failed to {operation} category: {e}",
                    details={"operation": operation},
                ) from e

            logger.warning(
                "Category write conflict",
                operation=operation,
                error=str(getattr(e, "orig", e)),
                request_id=self.request_id,
                **context,
            )
            raise CategoryConflictError(
                f"Failed to {operation} category: a conflicting change was committed concurrently",
                details={"operation": operation},
            ) from e
        except Exception:
            await self.session.rollback()
            raise

    @staticmethod
    def _check_id(category_id: str) -> None:
        if not is_valid_category_id(category_id):
            raise CategoryError("Invalid category ID format", details={"category_id": category_id})

    @staticmethod
    def _check_changes(changes: dict[str, Any]) -> None:
        collector = ErrorCollector()
        for field in sorted(changes.keys() - UPDATABLE_FIELDS):
            collector.add(f"Field '{field}' cannot be updated")
        for field in sorted(UPDATABLE_FIELDS - NULLABLE_FIELDS):
            collector.add_if(
                field in changes and changes[field] is None,
                f"Field '{field}' cannot be null",
            )
        result = collector.to_result()
        if not result.valid:
            raise InvalidHierarchyError(result.errors)


# ============================================================================
# Service Factory
# ============================================================================


def get_category_service(
    session: AsyncSession,
    request_id: str | None = None,
) -> CategoryHierarchyService:
    """Get category service instance.

    Args:
        session: Async SQLAlchemy session.
        request_id: Request ID for correlation.

    Returns:
        CategoryHierarchyService instance.
    """
    return CategoryHierarchyService(session, request_id=request_id)
