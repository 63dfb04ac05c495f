"""Shared fixtures: an in-memory SQLite database per test."""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_api.catalog.models import Product, product_categories
from catalog_api.catalog.service import CategoryHierarchyService
from catalog_api.infrastructure.database import Base


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a session for one test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(session: AsyncSession) -> CategoryHierarchyService:
    """Create category service."""
    return CategoryHierarchyService(session)


@pytest.fixture
async def nike_tree(service: CategoryHierarchyService) -> dict[str, str]:
    """Create Nike > Shoes > Mens and return their IDs by slug."""
    nike = await service.create_category("Nike", level=0)
    shoes = await service.create_category("Shoes", parent_id=nike.id, level=1)
    mens = await service.create_category("Mens", parent_id=shoes.id, level=2)
    return {"nike": nike.id, "shoes": shoes.id, "mens": mens.id}


@pytest.fixture
def attach_product(session: AsyncSession):
    """Return a helper that lists a new product under a category."""

    async def attach(category_id: str) -> str:
        product = Product(id=str(uuid4()), sku=f"SKU-{uuid4().hex[:8]}", title="Air Zoom")
        session.add(product)
        await session.flush()
        await session.execute(
            insert(product_categories).values(product_id=product.id, category_id=category_id)
        )
        await session.commit()
        return product.id

    return attach
