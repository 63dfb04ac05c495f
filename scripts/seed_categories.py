#!/usr/bin/env python3
"""Seed category hierarchy script.

Creates the category tables if needed and seeds brand > category >
subcategory entries from the embedded default taxonomy or a seed file.
Existing paths are skipped, so the script can be re-run.

Usage:
    python scripts/seed_categories.py
    python scripts/seed_categories.py --file categories.txt
    python scripts/seed_categories.py --dry-run
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_api.catalog.service import CategoryHierarchyService
from catalog_api.catalog.taxonomy import CategorySeeder, SeedCategory, TaxonomyParser
from catalog_api.infrastructure.database import Base, async_session_factory, engine
from catalog_api.infrastructure.logging_config import configure_logging


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def load_categories(seed_file: str | None) -> list[SeedCategory]:
    """Parse the seed file, or the embedded taxonomy when none is given."""
    parser = TaxonomyParser()
    if seed_file:
        return parser.parse_file(seed_file)
    return parser.parse_embedded()


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed the category hierarchy",
    )
    parser.add_argument(
        "--file",
        default=None,
        help="Seed file with 'Brand > Category > Subcategory' lines (default: embedded set)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and print the categories without writing them",
    )

    args = parser.parse_args()

    configure_logging()

    categories = load_categories(args.file)

    print("=" * 60)
    print("Catalog Category Seeder")
    print("=" * 60)
    print(f"Source: {args.file or 'embedded taxonomy'}")
    print(f"Entries: {len(categories)}")
    print()

    if args.dry_run:
        for category in categories:
            print(f"{'  ' * category.level}{category.name}  ({category.slug_path})")
        return

    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    async with async_session_factory() as session:
        seeder = CategorySeeder(CategoryHierarchyService(session))
        result = await seeder.seed(categories)

    print(f"  ✓ Created: {result.created} categories")
    print(f"  ✓ Skipped: {result.skipped} existing categories")
    print()

    await engine.dispose()

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
