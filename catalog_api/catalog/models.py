"""SQLAlchemy models for the product catalog.

Defines the Category hierarchy table and the slim Product table whose
category references gate category deletion.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_api.infrastructure.database import Base

MAX_LEVEL = 2
MAX_NAME_LENGTH = 100
PATH_SEPARATOR = "/"

# JSONB on PostgreSQL (GIN-indexable), plain JSON elsewhere
AncestorList = JSON().with_variant(JSONB(), "postgresql")


class Category(Base):
    """Category node in the brand -> category -> subcategory tree.

    The position in the tree is stored twice: as a materialized path of
    slugs and as the list of ancestor paths, so subtree and ancestor
    lookups never walk the tree level by level.

    Attributes:
        id: Unique category identifier (UUID string).
        name: Display name.
        description: Optional free text.
        parent_id: ID of the parent category, None for roots. Lookup key only.
        level: Depth, 0 = brand, 1 = category, 2 = subcategory.
        path: Slugs from root to this node joined by "/" (e.g. "nike/shoes").
        ancestors: Paths of every ancestor, root first.
        is_active: Visibility flag, independent of soft delete.
        sort_order: Secondary sort key among siblings.
        deleted_at: Soft delete timestamp, None while live.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    ancestors: Mapped[list[str]] = mapped_column(AncestorList, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # Path is unique among live categories only
        Index(
            "uq_categories_live_path",
            "path",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_categories_parent_sort", "parent_id", "sort_order"),
        Index("ix_categories_level_active_sort", "level", "is_active", "sort_order"),
        Index("ix_categories_ancestors", "ancestors", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, path={self.path}, level={self.level})>"

    @property
    def is_deleted(self) -> bool:
        """Whether the category is soft-deleted."""
        return self.deleted_at is not None

    @property
    def slug(self) -> str:
        """Last path segment."""
        return self.path.rsplit(PATH_SEPARATOR, 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parent_id": self.parent_id,
            "level": self.level,
            "path": self.path,
            "slug": self.slug,
            "ancestors": list(self.ancestors or []),
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "deleted_at": self.deleted_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# Products reference categories many-to-many
product_categories = Table(
    "product_categories",
    Base.metadata,
    Column(
        "product_id",
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "category_id",
        String(36),
        ForeignKey("categories.id"),
        primary_key=True,
        index=True,
    ),
)


class Product(Base):
    """Product entity in the catalog.

    Only the fields the category engine and its tests need; product
    CRUD lives elsewhere.

    Attributes:
        id: Unique product identifier (UUID string).
        sku: Stock Keeping Unit.
        title: Product title.
        categories: Categories this product is listed under.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    categories: Mapped[list["Category"]] = relationship(
        "Category",
        secondary=product_categories,
        lazy="raise",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku})>"
