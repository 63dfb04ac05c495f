"""Category and product repositories for database operations.

Every category query here is scoped to live (not soft-deleted) rows
unless the method says otherwise.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.catalog.models import PATH_SEPARATOR, Category, product_categories


class CategoryRepository:
    """Repository for Category database operations.

    Provides the lookups the hierarchy engine needs: by id, by exact
    path, by path prefix (subtree), by path set (ancestors) and by
    parent id (tree levels), plus the filtered listing.

    Example usage:
        async with async_session_factory() as session:
            repo = CategoryRepository(session)
            nike = await repo.get_by_path("nike")
            subtree = await repo.find_descendants(nike.path)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def add(self, category: Category) -> Category:
        """Add a category and flush it.

        Args:
            category: Category to insert.

        Returns:
            The flushed category (id and defaults populated).
        """
        self.session.add(category)
        await self.session.flush()
        return category

    async def flush(self) -> None:
        """Flush pending changes as one batch."""
        await self.session.flush()

    async def get_by_id(
        self,
        category_id: str,
        include_deleted: bool = False,
    ) -> Category | None:
        """Get category by ID.

        Args:
            category_id: Category ID.
            include_deleted: Whether soft-deleted rows match.

        Returns:
            Category if found, None otherwise.
        """
        query = select(Category).where(Category.id == category_id)

        if not include_deleted:
            query = query.where(Category.deleted_at.is_(None))

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_deleted(self, category_id: str) -> Category | None:
        """Get a soft-deleted category by ID.

        Args:
            category_id: Category ID.

        Returns:
            Category if it exists and is soft-deleted, None otherwise.
        """
        query = select(Category).where(
            and_(
                Category.id == category_id,
                Category.deleted_at.is_not(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_path(self, path: str) -> Category | None:
        """Get live category by exact materialized path.

        Args:
            path: Materialized path (e.g. "nike/shoes").

        Returns:
            Category if found, None otherwise.
        """
        query = select(Category).where(
            and_(
                Category.path == path,
                Category.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def path_exists(self, path: str, exclude_id: str | None = None) -> bool:
        """Check whether a live category already owns a path.

        Args:
            path: Materialized path to probe.
            exclude_id: Category to ignore (the one being updated).

        Returns:
            True if another live category has this path.
        """
        conditions = [
            Category.path == path,
            Category.deleted_at.is_(None),
        ]
        if exclude_id is not None:
            conditions.append(Category.id != exclude_id)

        query = select(Category.id).where(and_(*conditions)).limit(1)
        result = await self.session.execute(query)
        return result.first() is not None

    async def find_descendants(self, path: str) -> Sequence[Category]:
        """Find every live category below a path.

        Matches on the "<path>/" prefix with LIKE wildcards escaped, so
        names containing "%" or "_" never widen the match.

        Args:
            path: Materialized path of the subtree root.

        Returns:
            Descendants ordered by level, then sort order.
        """
        query = (
            select(Category)
            .where(
                and_(
                    Category.path.startswith(path + PATH_SEPARATOR, autoescape=True),
                    Category.deleted_at.is_(None),
                )
            )
            .order_by(Category.level.asc(), Category.sort_order.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def find_by_paths(self, paths: list[str]) -> Sequence[Category]:
        """Find live categories by a set of exact paths.

        Args:
            paths: Materialized paths.

        Returns:
            Matching categories ordered by level.
        """
        if not paths:
            return []

        query = (
            select(Category)
            .where(
                and_(
                    Category.path.in_(paths),
                    Category.deleted_at.is_(None),
                )
            )
            .order_by(Category.level.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def find_at_level(
        self,
        level: int,
        include_inactive: bool = False,
    ) -> Sequence[Category]:
        """Find live categories on one level.

        Args:
            level: Tree level.
            include_inactive: Whether inactive categories match.

        Returns:
            Categories ordered by sort order, then name.
        """
        conditions = [
            Category.level == level,
            Category.deleted_at.is_(None),
        ]
        if not include_inactive:
            conditions.append(Category.is_active.is_(True))

        query = (
            select(Category)
            .where(and_(*conditions))
            .order_by(Category.sort_order.asc(), Category.name.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def find_children(
        self,
        parent_ids: list[str],
        include_inactive: bool = False,
    ) -> Sequence[Category]:
        """Find live direct children of several parents at once.

        Args:
            parent_ids: Parent category IDs.
            include_inactive: Whether inactive categories match.

        Returns:
            Children ordered by sort order, then name.
        """
        if not parent_ids:
            return []

        conditions = [
            Category.parent_id.in_(parent_ids),
            Category.deleted_at.is_(None),
        ]
        if not include_inactive:
            conditions.append(Category.is_active.is_(True))

        query = (
            select(Category)
            .where(and_(*conditions))
            .order_by(Category.sort_order.asc(), Category.name.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def find_all(
        self,
        level: int | None = None,
        parent_id: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Category]:
        """Find live categories with filtering and pagination.

        Args:
            level: Filter by level.
            parent_id: Filter by direct parent.
            is_active: Filter by active flag.
            search: Case-insensitive match on name or description.
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Sequence of matching categories. With a search term the most
            relevant come first.
        """
        query = select(Category).where(
            and_(*self._build_conditions(level, parent_id, is_active, search))
        )

        if search:
            query = query.order_by(self._relevance(search).desc())

        query = query.order_by(
            Category.level.asc(),
            Category.sort_order.asc(),
            Category.name.asc(),
        )

        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(
        self,
        level: int | None = None,
        parent_id: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> int:
        """Count live categories matching filters.

        Args:
            level: Filter by level.
            parent_id: Filter by direct parent.
            is_active: Filter by active flag.
            search: Case-insensitive match on name or description.

        Returns:
            Count of matching categories.
        """
        query = select(func.count(Category.id)).where(
            and_(*self._build_conditions(level, parent_id, is_active, search))
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    def _build_conditions(
        self,
        level: int | None,
        parent_id: str | None,
        is_active: bool | None,
        search: str | None,
    ) -> list[Any]:
        """Build WHERE conditions for listing queries."""
        conditions: list[Any] = [Category.deleted_at.is_(None)]

        if level is not None:
            conditions.append(Category.level == level)

        if parent_id is not None:
            conditions.append(Category.parent_id == parent_id)

        if is_active is not None:
            conditions.append(Category.is_active.is_(is_active))

        if search:
            conditions.append(
                or_(
                    Category.name.icontains(search, autoescape=True),
                    Category.description.icontains(search, autoescape=True),
                )
            )

        return conditions

    def _relevance(self, search: str) -> Any:
        """Score a row against a search term.

        Exact name match scores 3, name prefix 2, name substring 1 and a
        description-only match 0.
        """
        return case(
            (func.lower(Category.name) == search.lower(), 3),
            (Category.name.istartswith(search, autoescape=True), 2),
            (Category.name.icontains(search, autoescape=True), 1),
            else_=0,
        )


class ProductRepository:
    """Repository for the product side of category references."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def count_by_category(self, category_id: str) -> int:
        """Count products that reference a category.

        Args:
            category_id: Category ID.

        Returns:
            Number of referencing products.
        """
        query = select(func.count()).select_from(product_categories).where(
            product_categories.c.category_id == category_id
        )
        result = await self.session.execute(query)
        return result.scalar_one()
