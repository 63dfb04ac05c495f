"""Category seed taxonomy parser and seeder.

Seed files describe the catalog tree one category per line, from the
brand down:

    Nike
    Nike > Shoes
    Nike > Shoes > Running

Intermediate categories may be left out; "Nike > Shoes > Running" alone
also yields "Nike" and "Nike > Shoes". Blank lines and lines starting
with "#" are ignored.
"""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from catalog_api.catalog.models import MAX_LEVEL
from catalog_api.catalog.service import CategoryHierarchyService
from catalog_api.catalog.slug import slugify
from catalog_api.domain.exceptions import CategoryNotFoundError

logger = structlog.get_logger()

SEPARATOR = ">"


class TaxonomyParseError(ValueError):
    """Raised for a seed line that cannot become a category."""

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        self.line_number = line_number
        self.line = line
        super().__init__(f"Line {line_number}: {reason}: {line!r}")


@dataclass
class SeedCategory:
    """A category entry parsed from a seed file.

    Attributes:
        name: Category name (leaf part).
        full_path: Full name path (e.g., "Nike > Shoes > Running").
        level: Tree level (0 = brand).
        sort_order: Position among siblings, in file order.
    """

    name: str
    full_path: str
    level: int = 0
    sort_order: int = 0
    children: list["SeedCategory"] = field(default_factory=list, repr=False)

    @property
    def path_parts(self) -> list[str]:
        """Get list of path components.

        Returns:
            List of category names from root to this category.
        """
        return [part.strip() for part in self.full_path.split(SEPARATOR)]

    @property
    def parent_path(self) -> str | None:
        """Full name path of the parent, None for a brand."""
        if self.level == 0:
            return None
        return f" {SEPARATOR} ".join(self.path_parts[:-1])

    @property
    def slug_path(self) -> str:
        """Materialized path this entry will be stored under."""
        return "/".join(slugify(part) for part in self.path_parts)


class TaxonomyParser:
    """Parser for category seed files.

    Example usage:
        parser = TaxonomyParser()
        categories = parser.parse_file("categories.txt")
        brands = parser.get_root_categories()
    """

    # Embedded default catalog tree
    EMBEDDED_TAXONOMY = '''
# Brands
Nike > Shoes > Running
Nike > Shoes > Basketball
Nike > Shoes > Mens
Nike > Apparel > T-Shirts
Nike > Apparel > Hoodies & Sweatshirts
Nike > Accessories > Bags
Adidas > Shoes > Running
Adidas > Shoes > Football
Adidas > Apparel > Jackets
Adidas > Accessories > Caps
Apple > Computers > Laptops
Apple > Computers > Desktops
Apple > Phones > Smartphones
Apple > Audio > Headphones
Samsung > Phones > Smartphones
Samsung > Phones > Accessories
Samsung > TV & Video > Televisions
Levi's > Apparel > Jeans
Levi's > Apparel > Jackets
IKEA > Furniture > Chairs
IKEA > Furniture > Tables
IKEA > Home Decor > Lighting
'''.strip()

    def __init__(self) -> None:
        """Initialize parser with empty category storage."""
        self._categories: dict[str, SeedCategory] = {}
        self._root_categories: list[SeedCategory] = []

    def parse_embedded(self) -> list[SeedCategory]:
        """Parse embedded default taxonomy.

        Returns:
            List of all categories, parents before children.
        """
        return self._parse_lines(self.EMBEDDED_TAXONOMY.splitlines())

    def parse_file(self, path: str | Path) -> list[SeedCategory]:
        """Parse taxonomy from file.

        Args:
            path: Path to seed file.

        Returns:
            List of all categories, parents before children.

        Raises:
            TaxonomyParseError: If a line is empty between separators
                or nests deeper than the hierarchy allows.
        """
        with open(path, encoding="utf-8") as f:
            lines = f.readlines()
        return self._parse_lines(lines)

    def _parse_lines(self, lines: list[str]) -> list[SeedCategory]:
        """Parse taxonomy from lines.

        Args:
            lines: Lines from seed file.

        Returns:
            List of all categories, parents before children.
        """
        self._categories.clear()
        self._root_categories.clear()

        for line_number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            parts = [p.strip() for p in line.split(SEPARATOR)]
            if any(not p for p in parts):
                raise TaxonomyParseError(line_number, line, "empty category name")
            if len(parts) > MAX_LEVEL + 1:
                raise TaxonomyParseError(
                    line_number, line, f"more than {MAX_LEVEL + 1} levels"
                )

            # Register every prefix so missing intermediates are implied
            parent: SeedCategory | None = None
            for depth in range(len(parts)):
                full_path = f" {SEPARATOR} ".join(parts[: depth + 1])
                category = self._categories.get(full_path)
                if category is None:
                    siblings = parent.children if parent else self._root_categories
                    category = SeedCategory(
                        name=parts[depth],
                        full_path=full_path,
                        level=depth,
                        sort_order=len(siblings),
                    )
                    self._categories[full_path] = category
                    siblings.append(category)
                parent = category

        return list(self._categories.values())

    def get_by_path(self, full_path: str) -> SeedCategory | None:
        """Get category by full name path.

        Args:
            full_path: Path such as "Nike > Shoes".

        Returns:
            Category if found, None otherwise.
        """
        return self._categories.get(full_path)

    def get_root_categories(self) -> list[SeedCategory]:
        """Get brand-level categories.

        Returns:
            List of root categories.
        """
        return self._root_categories

    def get_all(self) -> list[SeedCategory]:
        """Get all categories.

        Returns:
            List of all categories.
        """
        return list(self._categories.values())


@dataclass
class SeedResult:
    """Outcome of a seeding run."""

    created: int = 0
    skipped: int = 0


class CategorySeeder:
    """Creates parsed seed categories through the hierarchy service.

    Categories whose path already exists are left untouched, so a seed
    run can be repeated safely.

    Example usage:
        async with async_session_factory() as session:
            seeder = CategorySeeder(CategoryHierarchyService(session))
            result = await seeder.seed(TaxonomyParser().parse_embedded())
    """

    def __init__(self, service: CategoryHierarchyService) -> None:
        self.service = service

    async def seed(self, categories: list[SeedCategory]) -> SeedResult:
        """Create categories in order, parents first.

        Args:
            categories: Parsed seed entries, parents before children.

        Returns:
            Counts of created and skipped categories.
        """
        result = SeedResult()
        ids_by_path: dict[str, str] = {}

        for seed in categories:
            try:
                existing = await self.service.get_category_by_path(seed.slug_path)
            except CategoryNotFoundError:
                existing = None

            if existing is not None:
                ids_by_path[seed.full_path] = existing.id
                result.skipped += 1
                continue

            parent_id = ids_by_path[seed.parent_path] if seed.parent_path else None
            category = await self.service.create_category(
                name=seed.name,
                parent_id=parent_id,
                level=seed.level,
                sort_order=seed.sort_order,
            )
            ids_by_path[seed.full_path] = category.id
            result.created += 1

        logger.info(
            "Categories seeded",
            created=result.created,
            skipped=result.skipped,
        )

        return result
