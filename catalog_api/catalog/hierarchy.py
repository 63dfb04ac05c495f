"""Materialized path management for the category tree.

Paths and ancestor lists are derived data: every category's path is its
parent's path plus its own slug, and its ancestors are its parent's
ancestors plus the parent's path. This module computes them, rewrites
them for a whole subtree when a category is renamed or moved, and
answers ancestor/descendant queries straight from them.
"""

from collections.abc import Sequence

import structlog

from catalog_api.catalog.models import PATH_SEPARATOR, Category
from catalog_api.catalog.repository import CategoryRepository
from catalog_api.catalog.slug import slugify
from catalog_api.catalog.validator import is_valid_category_id
from catalog_api.domain.exceptions import (
    CategoryError,
    CategoryNotFoundError,
    ParentNotFoundError,
)

logger = structlog.get_logger()


def join_path(parent_path: str | None, slug: str) -> str:
    """Append a slug to a parent path (or start a root path)."""
    if not parent_path:
        return slug
    return f"{parent_path}{PATH_SEPARATOR}{slug}"


def is_within(path: str, root_path: str) -> bool:
    """Check whether a path is root_path itself or lies below it."""
    return path == root_path or path.startswith(root_path + PATH_SEPARATOR)


def rebase_path(path: str, old_root: str, new_root: str) -> str:
    """Move a path from under old_root to under new_root.

    Only the leading old_root is replaced; a later segment that happens
    to spell the same text is left alone.

    Raises:
        ValueError: If path does not lie within old_root.
    """
    if not is_within(path, old_root):
        raise ValueError(f"Path {path!r} is not within {old_root!r}")
    return new_root + path[len(old_root):]


def rebase_ancestors(
    ancestors: Sequence[str],
    old_root: str,
    new_root: str,
    new_root_ancestors: Sequence[str],
) -> list[str]:
    """Rebuild a descendant's ancestor list after its subtree root moved.

    Entries above the subtree root are replaced by the root's new
    ancestor chain; entries at or below it are rebased.

    Args:
        ancestors: The descendant's current ancestor paths.
        old_root: Subtree root path before the change.
        new_root: Subtree root path after the change.
        new_root_ancestors: Subtree root's ancestor paths after the change.

    Returns:
        New ancestor list, root first.
    """
    inside = [rebase_path(a, old_root, new_root) for a in ancestors if is_within(a, old_root)]
    return list(new_root_ancestors) + inside


class HierarchyPathManager:
    """Computes and maintains category paths and ancestor lists.

    Example usage:
        manager = HierarchyPathManager(CategoryRepository(session))
        path = await manager.generate_path("Shoes", nike.id)  # "nike/shoes"
        rewritten = await manager.update_descendant_paths(nike.id, "nike-inc")
    """

    def __init__(self, repository: CategoryRepository) -> None:
        """Initialize path manager.

        Args:
            repository: Category repository.
        """
        self.repository = repository

    async def generate_ancestors(self, parent_id: str | None) -> list[str]:
        """Compute the ancestor list for a child of parent_id.

        Args:
            parent_id: Parent category ID, None for a root.

        Returns:
            Parent's ancestors followed by the parent's path.

        Raises:
            ParentNotFoundError: If parent_id does not resolve.
        """
        if parent_id is None:
            return []

        parent = await self._get_parent(parent_id)
        return [*(parent.ancestors or []), parent.path]

    async def generate_path(self, name: str, parent_id: str | None) -> str:
        """Compute the materialized path for a category.

        Args:
            name: Category display name.
            parent_id: Parent category ID, None for a root.

        Returns:
            slug(name) for roots, otherwise parent.path + "/" + slug(name).

        Raises:
            InvalidSlugError: If the name yields no slug.
            ParentNotFoundError: If parent_id does not resolve.
        """
        slug = slugify(name)

        if parent_id is None:
            return slug

        parent = await self._get_parent(parent_id)
        return join_path(parent.path, slug)

    async def path_exists(self, path: str, exclude_id: str | None = None) -> bool:
        """Check whether a live category already uses a path.

        Args:
            path: Materialized path.
            exclude_id: Category to ignore, so an update does not
                collide with itself.

        Returns:
            True if the path is taken.
        """
        if not path:
            return False

        if exclude_id is not None and not is_valid_category_id(exclude_id):
            raise CategoryError("Invalid category ID format")

        return await self.repository.path_exists(path, exclude_id)

    async def update_descendant_paths(
        self,
        category_id: str,
        new_path: str,
        new_ancestors: list[str] | None = None,
    ) -> int:
        """Rewrite the paths and ancestors of a category's whole subtree.

        Must run before the category's own path is changed, since the
        current path is what identifies the subtree. All rows are
        written in a single flush.

        Args:
            category_id: Subtree root.
            new_path: Subtree root's new path.
            new_ancestors: Subtree root's new ancestors when it is being
                moved; defaults to its current ancestors.

        Returns:
            Number of descendants rewritten.

        Raises:
            CategoryNotFoundError: If category_id does not resolve.
        """
        category = await self._get_live(category_id)
        old_path = category.path
        root_ancestors = (
            list(category.ancestors or []) if new_ancestors is None else list(new_ancestors)
        )

        descendants = await self.repository.find_descendants(old_path)
        if not descendants:
            return 0

        for descendant in descendants:
            descendant.path = rebase_path(descendant.path, old_path, new_path)
            descendant.ancestors = rebase_ancestors(
                descendant.ancestors or [],
                old_path,
                new_path,
                root_ancestors,
            )

        await self.repository.flush()

        logger.info(
            "Descendant paths rewritten",
            category_id=category_id,
            old_path=old_path,
            new_path=new_path,
            count=len(descendants),
        )

        return len(descendants)

    async def get_ancestors(self, category_id: str) -> list[Category]:
        """Get a category's live ancestors, root first.

        Args:
            category_id: Category ID.

        Returns:
            Ancestors ordered by level.
        """
        category = await self._get_live(category_id)
        if not category.ancestors:
            return []
        return list(await self.repository.find_by_paths(list(category.ancestors)))

    async def get_descendants(self, category_id: str) -> list[Category]:
        """Get every live category below a category.

        Args:
            category_id: Category ID.

        Returns:
            Descendants ordered by level, then sort order.
        """
        category = await self._get_live(category_id)
        return list(await self.repository.find_descendants(category.path))

    async def find_cycle(self, category_id: str, new_parent_id: str) -> bool:
        """Check whether re-parenting would make a category its own ancestor.

        Args:
            category_id: Category being moved.
            new_parent_id: Proposed parent.

        Returns:
            True if new_parent_id is the category itself or one of its
            descendants.
        """
        if new_parent_id == category_id:
            return True
        descendants = await self.get_descendants(category_id)
        return any(d.id == new_parent_id for d in descendants)

    async def _get_live(self, category_id: str) -> Category:
        """Load a live category or raise."""
        if not is_valid_category_id(category_id):
            raise CategoryError("Invalid category ID format")

        category = await self.repository.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def _get_parent(self, parent_id: str) -> Category:
        """Load a live parent or raise ParentNotFoundError."""
        parent = None
        if is_valid_category_id(parent_id):
            parent = await self.repository.get_by_id(parent_id)
        if parent is None:
            raise ParentNotFoundError(parent_id)
        return parent
