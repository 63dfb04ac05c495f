"""Domain exceptions.

All domain-level errors that represent business rule violations.
These exceptions are raised by the category hierarchy engine when
invariants would be violated or an operation is refused, and carry
the error code and HTTP status the API layer reports.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Category Errors
# ============================================================================


class CategoryError(DomainError):
    """Base class for category hierarchy errors.

    Also raised directly for refused operations that have no more
    specific type, and for store failures wrapped with operation context.
    """

    error_code: str = "CATEGORY_ERROR"
    status_code: int = 400


class CategoryNotFoundError(CategoryError):
    """Raised when no live category matches the given ID or path."""

    error_code = "CATEGORY_NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        category_id: str | None = None,
        label: str = "Category",
        path: str | None = None,
    ) -> None:
        """Initialize category not found error.

        Args:
            category_id: ID that did not resolve.
            label: Noun used at the start of the message.
            path: Materialized path that did not resolve, for path lookups.
        """
        if path is not None:
            message, details = f"{label} with path {path} not found", {"path": path}
        else:
            message, details = f"{label} with ID {category_id} not found", {"category_id": category_id}
        super().__init__(
            message,
            details=details,
        )


class ParentNotFoundError(CategoryNotFoundError):
    """Raised when a parent ID does not resolve to a live category."""

    error_code = "PARENT_NOT_FOUND"

    def __init__(self, parent_id: str) -> None:
        """Initialize parent not found error.

        Args:
            parent_id: Parent ID that did not resolve.
        """
        super().__init__(parent_id, label="Parent category")


class CategoryNotDeletedError(CategoryError):
    """Raised when restoring a category that is not soft-deleted."""

    error_code = "CATEGORY_NOT_DELETED"
    status_code = 404

    def __init__(self, category_id: str) -> None:
        """Initialize category not deleted error.

        Args:
            category_id: ID of the category.
        """
        super().__init__(
            f"Category {category_id} not found or not deleted",
            details={"category_id": category_id},
        )


class InvalidHierarchyError(CategoryError):
    """Raised when one or more hierarchy rules are violated.

    Carries every collected message so callers can report all
    problems in one round trip.
    """

    error_code = "INVALID_HIERARCHY"

    def __init__(self, errors: list[str] | str) -> None:
        """Initialize invalid hierarchy error.

        Args:
            errors: Validation messages (a single string is accepted).
        """
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__(
            "; ".join(self.errors),
            details={"errors": self.errors},
        )


class InvalidSlugError(CategoryError):
    """Raised when a name does not produce a usable slug."""

    error_code = "INVALID_SLUG"

    def __init__(self, name: str | None) -> None:
        """Initialize invalid slug error.

        Args:
            name: The offending category name.
        """
        super().__init__(
            "Generated slug is empty - invalid name provided",
            details={"name": name},
        )


class CategoryInUseError(CategoryError):
    """Raised when deleting a category that still has dependents."""

    error_code = "CATEGORY_IN_USE"
    status_code = 409

    def __init__(self, category_id: str, message: str, **counts: int) -> None:
        """Initialize category in use error.

        Args:
            category_id: ID of the category.
            message: Explanation naming the blocking count.
            **counts: Blocking counts (e.g. subcategories=2).
        """
        super().__init__(message, details={"category_id": category_id, **counts})


class CategoryConflictError(CategoryError):
    """Raised when a concurrent write wins a uniqueness race."""

    error_code = "CATEGORY_CONFLICT"
    status_code = 409
