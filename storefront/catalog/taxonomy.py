"""
Product taxonomy: built-in categories merged with admin-managed rows.
"""

import structlog

from storefront.db.repositories import CategoryRepository, ProductRepository
from storefront.errors import IntegrityViolation, NotFound, ValidationFailed
from storefront.models import CategoryDoc

logger = structlog.get_logger(__name__)

_E_LIQUID_FLAVOURS = [
    "Fruits",
    "Bakery & Dessert",
    "Tobacco",
    "Custard & Cream",
    "Coffee",
    "Menthol/Mint",
]

DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "E-LIQUID": _E_LIQUID_FLAVOURS,
    "TANKS": ["Rda", "Rta", "Rdta", "Subohm", "Disposable"],
    "NIC SALTS": _E_LIQUID_FLAVOURS,
    "POD SYSTEM": ["Disposable", "Refillable Pod Kit", "Pre-Filled Cartridge"],
    "DEVICE": ["Kit", "Only Mod"],
    "BORO": ["Alo (Boro)", "Boro Bridge and Cartridge", "Boro Accessories And Tools"],
    "ACCESSORIES": [
        "SibOhm Coil",
        "Charger",
        "Cotton",
        "Premade Coil",
        "Battery",
        "Tank Glass",
        "Cartridge",
        "RBA/RBK",
        "WIRE SPOOL",
        "DRIP TIP",
    ],
}

CATEGORY_NAME_MIN = 2
CATEGORY_NAME_MAX = 50
SUBCATEGORY_NAME_MAX = 50


def merge_categories(rows: list[CategoryDoc]) -> dict[str, list[str]]:
    """Defaults overlaid with stored rows; a tombstoned row removes its entry."""
    merged = {name: list(subs) for name, subs in DEFAULT_CATEGORIES.items()}
    for row in rows:
        if row.deleted:
            merged.pop(row.name, None)
        else:
            merged[row.name] = list(row.subcategories)
    return merged


def _normalize_category(name: str | None) -> str:
    name = (name or "").strip().upper()
    if not name:
        raise ValidationFailed("Category name is required")
    if not CATEGORY_NAME_MIN <= len(name) <= CATEGORY_NAME_MAX:
        raise ValidationFailed(
            f"Category name must be between {CATEGORY_NAME_MIN} and {CATEGORY_NAME_MAX} characters"
        )
    return name


def _normalize_subcategory(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Subcategory name is required")
    if len(name) > SUBCATEGORY_NAME_MAX:
        raise ValidationFailed(f"Subcategory name must be at most {SUBCATEGORY_NAME_MAX} characters")
    return name


class Taxonomy:
    """Reads and mutations of the merged category tree."""

    def __init__(self, categories: CategoryRepository, products: ProductRepository):
        self.categories = categories
        self.products = products

    def merged(self) -> dict[str, list[str]]:
        return merge_categories(self.categories.list_all())

    def contains(self, category: str, subcategory: str | None = None) -> bool:
        """Whether a category (and subcategory, when given) exists, ignoring case."""
        merged = self.merged()
        subs = next((v for k, v in merged.items() if k.upper() == category.strip().upper()), None)
        if subs is None:
            return False
        if not subcategory:
            return True
        wanted = subcategory.strip().lower()
        return any(s.lower() == wanted for s in subs)

    def add_category(self, name: str | None, subcategories: list[str] | None = None) -> CategoryDoc:
        name = _normalize_category(name)
        subs = [_normalize_subcategory(s) for s in (subcategories or []) if s and str(s).strip()]

        if name in self.merged():
            raise IntegrityViolation("Category already exists")

        row = self.categories.get_by_name(name)
        if row is not None:
            # Only tombstoned rows reach here
            self.categories.replace_row(name, subs, deleted=False)
        else:
            self.categories.create(CategoryDoc(name=name, subcategories=subs))

        logger.info("Category added", category=name, subcategories=len(subs))
        return self.categories.get_by_name(name)

    def add_subcategory(self, name: str | None, subcategory: str | None) -> None:
        name = _normalize_category(name)
        subcategory = _normalize_subcategory(subcategory)

        row = self.categories.get_by_name(name)
        if row is not None and not row.deleted:
            self.categories.add_subcategory(name, subcategory)
        elif row is None and name in DEFAULT_CATEGORIES:
            seeded = list(DEFAULT_CATEGORIES[name])
            if subcategory not in seeded:
                seeded.append(subcategory)
            self.categories.replace_row(name, seeded)
        else:
            raise NotFound("Category not found")

        logger.info("Subcategory added", category=name, subcategory=subcategory)

    def delete_category(self, name: str | None) -> None:
        name = _normalize_category(name)

        in_use = self.products.count_in_taxonomy(name)
        if in_use > 0:
            raise IntegrityViolation(
                f"Cannot delete category. {in_use} product(s) are using this category.",
                productCount=in_use,
            )

        row = self.categories.get_by_name(name)
        if row is None or row.deleted:
            if row is None and name in DEFAULT_CATEGORIES:
                raise IntegrityViolation("Built-in categories cannot be deleted")
            raise NotFound("Category not found")

        if name in DEFAULT_CATEGORIES:
            self.categories.tombstone(name)
        else:
            self.categories.delete(name)
        logger.info("Category deleted", category=name)

    def delete_subcategory(self, name: str | None, subcategory: str | None) -> None:
        name = _normalize_category(name)
        subcategory = _normalize_subcategory(subcategory)

        in_use = self.products.count_in_taxonomy(name, subcategory)
        if in_use > 0:
            raise IntegrityViolation(
                f"Cannot delete subcategory. {in_use} product(s) are using this subcategory.",
                productCount=in_use,
            )

        row = self.categories.get_by_name(name)
        if row is not None and not row.deleted:
            current = row.subcategories
        elif row is None and name in DEFAULT_CATEGORIES:
            current = DEFAULT_CATEGORIES[name]
        else:
            raise NotFound("Category not found")

        stored = next((s for s in current if s.lower() == subcategory.lower()), None)
        if stored is None:
            raise NotFound("Subcategory not found")

        if row is not None:
            self.categories.pull_subcategory(name, stored)
        else:
            self.categories.replace_row(name, [s for s in current if s != stored])
        logger.info("Subcategory deleted", category=name, subcategory=subcategory)
