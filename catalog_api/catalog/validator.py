"""Hierarchy rule checks.

Each check returns human-readable messages instead of raising, so the
service can gather every problem with a hierarchy edit into one report.
"""

from dataclasses import dataclass, field
from uuid import UUID

from catalog_api.catalog.models import MAX_LEVEL
from catalog_api.catalog.repository import CategoryRepository


def is_valid_category_id(value: str | None) -> bool:
    """Check that a value is a well-formed category ID (UUID string)."""
    if not value:
        return False
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class ParentInfo:
    """The parent fields hierarchy checks need."""

    id: str
    level: int
    path: str
    ancestors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParentValidation:
    """Result of a parent existence lookup.

    Attributes:
        valid: True when a live parent was found.
        parent: The parent's hierarchy fields when valid.
        error: Why the lookup failed when not valid.
    """

    valid: bool
    parent: ParentInfo | None = None
    error: str | None = None


class HierarchyValidator:
    """Structural checks for the three-level category hierarchy.

    Only validate_parent_exists touches the store; the other checks are
    pure functions of their arguments.
    """

    def __init__(self, repository: CategoryRepository) -> None:
        """Initialize validator.

        Args:
            repository: Category repository used for parent lookups.
        """
        self.repository = repository

    def validate_level(self, level: int) -> list[str]:
        """Level must be within 0..MAX_LEVEL."""
        if level < 0 or level > MAX_LEVEL:
            return [f"Level must be a number between 0 and {MAX_LEVEL}"]
        return []

    def validate_root_constraints(self, level: int, parent_id: str | None) -> list[str]:
        """Level 0 forbids a parent; deeper levels require one."""
        errors: list[str] = []

        if level == 0 and parent_id is not None:
            errors.append("Root level categories (level 0) cannot have a parent")

        if level > 0 and parent_id is None:
            errors.append("Categories above level 0 must have a parent")

        return errors

    async def validate_parent_exists(self, parent_id: str) -> ParentValidation:
        """Look up a parent among live categories.

        Args:
            parent_id: Proposed parent ID.

        Returns:
            ParentValidation with the parent's fields, or the failure reason.
        """
        if not is_valid_category_id(parent_id):
            return ParentValidation(valid=False, error="Invalid parent ID format")

        parent = await self.repository.get_by_id(parent_id)
        if parent is None:
            return ParentValidation(valid=False, error="Parent category not found")

        return ParentValidation(
            valid=True,
            parent=ParentInfo(
                id=parent.id,
                level=parent.level,
                path=parent.path,
                ancestors=list(parent.ancestors or []),
            ),
        )

    def validate_parent_level(self, parent_level: int, child_level: int) -> list[str]:
        """A parent must sit exactly one level above its child."""
        if parent_level != child_level - 1:
            return [
                f"Parent level ({parent_level}) must be exactly one level "
                f"below child level ({child_level})"
            ]
        return []
