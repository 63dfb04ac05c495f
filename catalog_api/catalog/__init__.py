"""Category Hierarchy Engine.

Maintains the three-level brand > category > subcategory tree with
materialized paths and ancestor lists, and the seed taxonomy tooling.
"""

from catalog_api.catalog.hierarchy import HierarchyPathManager
from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.query import CategoryTreeNode, CategoryTreeQuery, PaginatedResult
from catalog_api.catalog.repository import CategoryRepository, ProductRepository
from catalog_api.catalog.service import CategoryHierarchyService, get_category_service
from catalog_api.catalog.slug import slugify
from catalog_api.catalog.taxonomy import CategorySeeder, SeedCategory, TaxonomyParser
from catalog_api.catalog.validator import HierarchyValidator

__all__ = [
    # Models
    "Category",
    "Product",
    # Hierarchy
    "slugify",
    "HierarchyValidator",
    "HierarchyPathManager",
    # Repository
    "CategoryRepository",
    "ProductRepository",
    # Query
    "CategoryTreeNode",
    "CategoryTreeQuery",
    "PaginatedResult",
    # Service
    "CategoryHierarchyService",
    "get_category_service",
    # Seeding
    "CategorySeeder",
    "SeedCategory",
    "TaxonomyParser",
]
