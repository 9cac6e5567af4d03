import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from app.services.errors import TaxonomyConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryRef:
    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class SubcategoryRef:
    id: str
    name: str
    slug: str
    category_id: str


def taxonomy_key(value) -> str:
    return str(value).strip().casefold()


def slugify(value: str) -> str:
    value = value.lower().strip()
    value = re.sub(r"[^\w\s-]", "", value)
    value = re.sub(r"[\s_-]+", "-", value)
    return value.strip("-")


def conflicting_entry(entries: Iterable, name: str, slug: str, exclude_id=None):
    """First entry (other than ``exclude_id``) whose name or slug matches ``name``/``slug`` case-insensitively."""
    keys = {taxonomy_key(name), taxonomy_key(slug)}
    for entry in entries:
        if exclude_id is not None and str(entry.id) == str(exclude_id):
            continue
        if keys & {taxonomy_key(entry.name), taxonomy_key(entry.slug)}:
            return entry
    return None


class TaxonomyIndex:
    """Case-insensitive name-or-slug lookups over one snapshot of the category tree.

    Build a fresh index per import; the catalog can change between requests.
    Subcategory names only have to be unique within their parent, so a key can
    map to several subcategories and the row's category picks between them.
    """

    def __init__(self, categories: Iterable[CategoryRef], subcategories: Iterable[SubcategoryRef]):
        self._categories: dict[str, CategoryRef] = {}
        self._subcategories: dict[str, list[SubcategoryRef]] = {}

        for category in categories:
            for key in {taxonomy_key(category.name), taxonomy_key(category.slug)}:
                existing = self._categories.get(key)
                if existing is not None and existing.id != category.id:
                    raise TaxonomyConflictError(
                        f'Categories "{existing.name}" and "{category.name}" both match "{key}"'
                    )
                self._categories[key] = category

        for sub in subcategories:
            for key in {taxonomy_key(sub.name), taxonomy_key(sub.slug)}:
                candidates = self._subcategories.setdefault(key, [])
                if any(c.id == sub.id for c in candidates):
                    continue
                clash = next((c for c in candidates if c.category_id == sub.category_id), None)
                if clash is not None:
                    raise TaxonomyConflictError(
                        f'Subcategories "{clash.name}" and "{sub.name}" in the same category both match "{key}"'
                    )
                candidates.append(sub)

        logger.debug(f"Taxonomy index built: {len(self._categories)} category keys, {len(self._subcategories)} subcategory keys")

    def category(self, value) -> CategoryRef | None:
        return self._categories.get(taxonomy_key(value))

    def subcategory(self, value, category_id: str | None = None) -> SubcategoryRef | None:
        candidates = self._subcategories.get(taxonomy_key(value))
        if not candidates:
            return None
        if category_id is not None:
            for candidate in candidates:
                if candidate.category_id == category_id:
                    return candidate
        return candidates[0]
