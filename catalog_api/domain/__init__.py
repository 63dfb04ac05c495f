"""Domain layer - exceptions and validation results.

This module exports the building blocks shared by the catalog engine:

- **Exceptions**: Category errors with stable error codes and HTTP statuses
- **Validation**: Batched validation results and the collector that builds them

Example usage:
    from catalog_api.domain import ErrorCollector, InvalidHierarchyError

    collector = ErrorCollector()
    collector.add_if(level > 2, "Level must be a number between 0 and 2")
    result = collector.to_result()
    if not result.valid:
        raise InvalidHierarchyError(result.errors)
"""

# Exceptions
from catalog_api.domain.exceptions import (
    CategoryConflictError,
    CategoryError,
    CategoryInUseError,
    CategoryNotDeletedError,
    CategoryNotFoundError,
    DomainError,
    InvalidHierarchyError,
    InvalidSlugError,
    ParentNotFoundError,
)

# Validation
from catalog_api.domain.validation import ErrorCollector, ValidationResult

__all__ = [
    # Exceptions
    "DomainError",
    "CategoryError",
    "CategoryNotFoundError",
    "ParentNotFoundError",
    "CategoryNotDeletedError",
    "InvalidHierarchyError",
    "InvalidSlugError",
    "CategoryInUseError",
    "CategoryConflictError",
    # Validation
    "ErrorCollector",
    "ValidationResult",
]
