"""Tests for the category hierarchy service."""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.catalog.models import Category
from catalog_api.catalog.service import CYCLE_ERROR, CategoryHierarchyService
from catalog_api.domain.exceptions import (
    CategoryConflictError,
    CategoryError,
    CategoryInUseError,
    CategoryNotDeletedError,
    CategoryNotFoundError,
    InvalidHierarchyError,
)


class StoreError(Exception):
    """Driver error carrying a SQLSTATE code."""

    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


async def load(
    session_factory: async_sessionmaker[AsyncSession],
    category_id: str,
) -> Category:
    """Read a category back through a separate session."""
    async with session_factory() as other:
        category = await other.get(Category, category_id)
        assert category is not None
        return category


class TestValidateCategoryHierarchy:
    """Tests for batched hierarchy validation."""

    async def test_valid_root(self, service: CategoryHierarchyService) -> None:
        result = await service.validate_category_hierarchy("Nike", None, 0)
        assert result.valid
        assert result.errors == []

    async def test_collects_every_error(self, service: CategoryHierarchyService) -> None:
        """All problems are reported together."""
        result = await service.validate_category_hierarchy("x" * 101, None, 3)

        assert not result.valid
        assert "Name must be at most 100 characters" in result.errors
        assert "Level must be a number between 0 and 2" in result.errors
        assert "Categories above level 0 must have a parent" in result.errors

    async def test_slug_error_is_a_message(self, service: CategoryHierarchyService) -> None:
        result = await service.validate_category_hierarchy("!!!", None, 0)
        assert result.errors == ["Generated slug is empty - invalid name provided"]

    async def test_slug_error_keeps_other_checks(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        """An unusable name does not hide the parent and cycle errors."""
        result = await service.validate_category_hierarchy(
            "!!!", nike_tree["mens"], 1, category_id=nike_tree["shoes"]
        )

        assert "Generated slug is empty - invalid name provided" in result.errors
        assert "Parent level (2) must be exactly one level below child level (1)" in result.errors
        assert CYCLE_ERROR in result.errors

    async def test_parent_errors(self, service: CategoryHierarchyService) -> None:
        missing = await service.validate_category_hierarchy("Shoes", str(uuid4()), 1)
        malformed = await service.validate_category_hierarchy("Shoes", "nope", 1)

        assert missing.errors == ["Parent category not found"]
        assert malformed.errors == ["Invalid parent ID format"]

    async def test_root_collision(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        result = await service.validate_category_hierarchy("NIKE", None, 0)
        assert result.errors == ['Path "nike" already exists']

    async def test_update_excludes_self(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        result = await service.validate_category_hierarchy(
            "Shoes", nike_tree["nike"], 1, category_id=nike_tree["shoes"]
        )
        assert result.valid


class TestCreateCategory:
    """Tests for category creation."""

    async def test_create_root(
        self,
        service: CategoryHierarchyService,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        nike = await service.create_category("Nike", description="Just do it", level=0)

        stored = await load(session_factory, nike.id)
        assert stored.path == "nike"
        assert stored.ancestors == []
        assert stored.parent_id is None
        assert stored.is_active is True
        assert stored.deleted_at is None
        assert stored.description == "Just do it"

    async def test_create_children(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        shoes = await load(session_factory, nike_tree["shoes"])
        mens = await load(session_factory, nike_tree["mens"])

        assert shoes.path == "nike/shoes"
        assert shoes.ancestors == ["nike"]
        assert shoes.parent_id == nike_tree["nike"]
        assert mens.path == "nike/shoes/mens"
        assert mens.ancestors == ["nike", "nike/shoes"]
        assert mens.level == 2

    async def test_duplicate_path_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.create_category("SHOES", parent_id=nike_tree["nike"], level=1)

        assert exc_info.value.errors == ['Path "nike/shoes" already exists']

    async def test_same_name_under_other_parent(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        adidas = await service.create_category("Adidas", level=0)
        shoes = await service.create_category("Shoes", parent_id=adidas.id, level=1)
        assert shoes.path == "adidas/shoes"

    async def test_level_mismatch(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        """A level 2 category directly under a brand is rejected."""
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.create_category("Socks", parent_id=nike_tree["nike"], level=2)

        assert exc_info.value.errors == [
            "Parent level (0) must be exactly one level below child level (2)"
        ]

    async def test_root_with_parent(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.create_category("Jordan", parent_id=nike_tree["nike"], level=0)

        assert "Root level categories (level 0) cannot have a parent" in exc_info.value.errors

    async def test_child_without_parent(self, service: CategoryHierarchyService) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.create_category("Shoes", level=1)

        assert exc_info.value.errors == ["Categories above level 0 must have a parent"]

    async def test_rejected_create_writes_nothing(
        self,
        service: CategoryHierarchyService,
    ) -> None:
        with pytest.raises(InvalidHierarchyError):
            await service.create_category("Shoes", parent_id=str(uuid4()), level=1)

        assert (await service.get_categories()).total == 0

    async def test_deleted_path_can_be_reused(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        await service.delete_category(nike_tree["mens"])

        mens = await service.create_category("Mens", parent_id=nike_tree["shoes"], level=2)

        assert mens.path == "nike/shoes/mens"
        assert mens.id != nike_tree["mens"]

    async def test_unique_index_race_is_conflict(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A path claimed between check and insert surfaces as a conflict."""

        async def never_exists(path: str, exclude_id: str | None = None) -> bool:
            return False

        monkeypatch.setattr(service.hierarchy, "path_exists", never_exists)

        with pytest.raises(CategoryConflictError) as exc_info:
            await service.create_category("Nike", level=0)

        assert exc_info.value.status_code == 409
        assert exc_info.value.message.startswith("Failed to create category")

    async def test_store_failure_wrapped(
        self,
        service: CategoryHierarchyService,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_add(category: Category) -> Category:
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(service.repository, "add", broken_add)

        with pytest.raises(CategoryError) as exc_info:
            await service.create_category("Nike", level=0)

        assert type(exc_info.value) is CategoryError
        assert exc_info.value.message == "Failed to create category: connection lost"


class TestUpdateCategory:
    """Tests for updates, renames and moves."""

    async def test_rename_propagates_to_subtree(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        nike = await service.update_category(nike_tree["nike"], {"name": "Nike Inc"})

        assert nike.name == "Nike Inc"
        assert nike.path == "nike-inc"

        shoes = await load(session_factory, nike_tree["shoes"])
        mens = await load(session_factory, nike_tree["mens"])
        assert shoes.path == "nike-inc/shoes"
        assert shoes.ancestors == ["nike-inc"]
        assert mens.path == "nike-inc/shoes/mens"
        assert mens.ancestors == ["nike-inc", "nike-inc/shoes"]

    async def test_rename_middle_node(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await service.update_category(nike_tree["shoes"], {"name": "Footwear"})

        mens = await load(session_factory, nike_tree["mens"])
        nike = await load(session_factory, nike_tree["nike"])
        assert mens.path == "nike/footwear/mens"
        assert mens.ancestors == ["nike", "nike/footwear"]
        assert nike.path == "nike"

    async def test_move_to_other_brand(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        adidas = await service.create_category("Adidas", level=0)

        shoes = await service.update_category(nike_tree["shoes"], {"parent_id": adidas.id})

        assert shoes.path == "adidas/shoes"
        assert shoes.ancestors == ["adidas"]
        assert shoes.parent_id == adidas.id
        mens = await load(session_factory, nike_tree["mens"])
        assert mens.path == "adidas/shoes/mens"
        assert mens.ancestors == ["adidas", "adidas/shoes"]
        assert await service.get_category_descendants(nike_tree["nike"]) == []

    async def test_cycle_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        """Moving shoes under its own child is refused."""
        shoes_id = nike_tree["shoes"]

        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(shoes_id, {"parent_id": nike_tree["mens"]})

        assert CYCLE_ERROR in exc_info.value.errors
        shoes = await service.get_category(shoes_id)
        assert shoes.path == "nike/shoes"
        assert shoes.parent_id == nike_tree["nike"]

    async def test_self_parent_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(nike_tree["shoes"], {"parent_id": nike_tree["shoes"]})

        assert CYCLE_ERROR in exc_info.value.errors

    async def test_rename_collision(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        adidas = await service.create_category("Adidas", level=0)
        adidas_id = adidas.id

        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(adidas_id, {"name": "Nike"})

        assert exc_info.value.errors == ['Path "nike" already exists']
        assert (await service.get_category(adidas_id)).path == "adidas"

    async def test_level_change_with_children_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        adidas = await service.create_category("Adidas", level=0)

        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(
                nike_tree["nike"], {"level": 1, "parent_id": adidas.id}
            )

        assert "Cannot change the level of a category that has subcategories" in exc_info.value.errors

    async def test_leaf_can_change_level(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        """A childless subcategory can be promoted to a category."""
        mens = await service.update_category(
            nike_tree["mens"], {"level": 1, "parent_id": nike_tree["nike"]}
        )

        assert mens.level == 1
        assert mens.path == "nike/mens"
        assert mens.ancestors == ["nike"]

    async def test_plain_fields_keep_path(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        shoes = await service.update_category(
            nike_tree["shoes"],
            {"description": "All footwear", "sort_order": 5, "is_active": False},
        )

        assert shoes.description == "All footwear"
        assert shoes.sort_order == 5
        assert shoes.is_active is False
        assert shoes.path == "nike/shoes"

    async def test_unknown_field_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(nike_tree["shoes"], {"path": "hacked"})

        assert exc_info.value.errors == ["Field 'path' cannot be updated"]

    async def test_null_name_rejected(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.update_category(nike_tree["shoes"], {"name": None})

        assert exc_info.value.errors == ["Field 'name' cannot be null"]

    async def test_missing_category(self, service: CategoryHierarchyService) -> None:
        with pytest.raises(CategoryNotFoundError):
            await service.update_category(str(uuid4()), {"name": "Ghost"})

    async def test_malformed_id(self, service: CategoryHierarchyService) -> None:
        with pytest.raises(CategoryError) as exc_info:
            await service.update_category("not-an-id", {"name": "Ghost"})

        assert exc_info.value.message == "Invalid category ID format"

    async def test_serialization_failure_is_conflict(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A rename that loses a race on its subtree rows is a conflict."""

        async def racing_flush() -> None:
            raise OperationalError(
                "UPDATE categories", {}, StoreError("could not serialize access", "40001")
            )

        monkeypatch.setattr(service.repository, "flush", racing_flush)

        with pytest.raises(CategoryConflictError) as exc_info:
            await service.update_category(nike_tree["nike"], {"name": "Nike Inc"})

        assert exc_info.value.status_code == 409
        assert exc_info.value.message.startswith("Failed to update category")
        assert not service.session.in_transaction()
        assert (await load(session_factory, nike_tree["shoes"])).path == "nike/shoes"

    async def test_other_driver_error_is_not_conflict(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def dropped_flush() -> None:
            raise OperationalError(
                "UPDATE categories", {}, StoreError("connection lost", "08006")
            )

        monkeypatch.setattr(service.repository, "flush", dropped_flush)

        with pytest.raises(CategoryError) as exc_info:
            await service.update_category(nike_tree["nike"], {"name": "Nike Inc"})

        assert type(exc_info.value) is CategoryError
        assert exc_info.value.status_code == 400

    async def test_unexpected_error_rolls_back(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_rewrite(*args, **kwargs) -> int:
            raise ValueError("path is outside the subtree")

        monkeypatch.setattr(service.hierarchy, "update_descendant_paths", broken_rewrite)

        with pytest.raises(ValueError):
            await service.update_category(nike_tree["nike"], {"name": "Nike Inc"})

        assert not service.session.in_transaction()
        assert (await load(session_factory, nike_tree["nike"])).path == "nike"


class TestDeleteCategory:
    """Tests for guarded soft delete."""

    async def test_delete_with_subcategories_refused(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(CategoryInUseError) as exc_info:
            await service.delete_category(nike_tree["nike"])

        assert "2 subcategories" in exc_info.value.message
        assert "Delete subcategories first" in exc_info.value.message
        assert exc_info.value.details["subcategories"] == 2

    async def test_delete_with_products_refused(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        attach_product,
    ) -> None:
        await attach_product(nike_tree["mens"])

        with pytest.raises(CategoryInUseError) as exc_info:
            await service.delete_category(nike_tree["mens"])

        assert "1 products" in exc_info.value.message
        assert exc_info.value.details["products"] == 1

    async def test_delete_leaf(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await service.delete_category(nike_tree["mens"])

        with pytest.raises(CategoryNotFoundError):
            await service.get_category(nike_tree["mens"])
        stored = await load(session_factory, nike_tree["mens"])
        assert stored.deleted_at is not None

    async def test_delete_bottom_up(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        for key in ("mens", "shoes", "nike"):
            await service.delete_category(nike_tree[key])

        assert (await service.get_categories()).total == 0

    async def test_delete_twice(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        await service.delete_category(nike_tree["mens"])

        with pytest.raises(CategoryNotFoundError):
            await service.delete_category(nike_tree["mens"])


class TestRestoreCategory:
    """Tests for restoring soft-deleted categories."""

    async def test_restore(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        await service.delete_category(nike_tree["mens"])

        mens = await service.restore_category(nike_tree["mens"])

        assert mens.deleted_at is None
        assert mens.path == "nike/shoes/mens"
        assert (await service.get_category(nike_tree["mens"])).id == nike_tree["mens"]

    async def test_restore_live_category(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        with pytest.raises(CategoryNotDeletedError):
            await service.restore_category(nike_tree["mens"])

    async def test_restore_follows_renamed_parent(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        """Deleted rows keep stale paths until restored."""
        await service.delete_category(nike_tree["mens"])
        await service.update_category(nike_tree["nike"], {"name": "Nike Inc"})

        stale = await service.repository.get_deleted(nike_tree["mens"])
        assert stale.path == "nike/shoes/mens"

        mens = await service.restore_category(nike_tree["mens"])

        assert mens.path == "nike-inc/shoes/mens"
        assert mens.ancestors == ["nike-inc", "nike-inc/shoes"]

    async def test_restore_under_deleted_parent_refused(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        await service.delete_category(nike_tree["mens"])
        await service.delete_category(nike_tree["shoes"])

        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.restore_category(nike_tree["mens"])

        assert exc_info.value.errors == ["Parent category not found"]
        assert await service.repository.get_deleted(nike_tree["mens"]) is not None

    async def test_restore_path_taken(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        await service.delete_category(nike_tree["mens"])
        await service.create_category("Mens", parent_id=nike_tree["shoes"], level=2)

        with pytest.raises(InvalidHierarchyError) as exc_info:
            await service.restore_category(nike_tree["mens"])

        assert exc_info.value.errors == ['Path "nike/shoes/mens" already exists']


class TestLookups:
    """Tests for single-category reads."""

    async def test_get_by_path(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        shoes = await service.get_category_by_path("/Nike/Shoes/")
        assert shoes.id == nike_tree["shoes"]

    async def test_get_by_path_missing(self, service: CategoryHierarchyService) -> None:
        with pytest.raises(CategoryNotFoundError) as exc_info:
            await service.get_category_by_path("nike/socks")

        assert exc_info.value.message == "Category with path nike/socks not found"

    async def test_ancestors_and_descendants(
        self,
        service: CategoryHierarchyService,
        nike_tree: dict[str, str],
    ) -> None:
        ancestors = await service.get_category_ancestors(nike_tree["mens"])
        descendants = await service.get_category_descendants(nike_tree["nike"])

        assert [c.name for c in ancestors] == ["Nike", "Shoes"]
        assert [c.name for c in descendants] == ["Shoes", "Mens"]
