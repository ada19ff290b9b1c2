"""Category-grouped catalog of loaded modules."""

from typing import Dict, Iterable, List, Tuple

from .errors import RegistryFrozenError
from .models import CatalogCategory, CatalogEntry, CatalogItem

DEFAULT_CATEGORY = "uncategorized"


def build_catalog(
    entries: Iterable[CatalogEntry], default_category: str = DEFAULT_CATEGORY
) -> List[CatalogCategory]:
    """Group catalog entries by category.

    Categories appear in the order they were first seen and items keep the
    order of ``entries``. Entries without a category are listed under
    ``default_category``.

    Args:
        entries: Bound modules in discovery order
        default_category: Category name for entries that declare none

    Returns:
        List of categories with their items
    """
    categories: Dict[str, CatalogCategory] = {}
    for entry in entries:
        name = entry.category or default_category
        if name not in categories:
            categories[name] = CatalogCategory(name=name)
        categories[name].items.append(
            CatalogItem(
                name=entry.name,
                desc=entry.description,
                path=entry.path,
                author=entry.author,
                method=entry.method,
            )
        )
    return list(categories.values())


class ModuleCatalog:
    """Append-only record of bound modules, frozen once startup completes."""

    def __init__(self, default_category: str = DEFAULT_CATEGORY):
        self.default_category = default_category
        self._entries: List[CatalogEntry] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def entries(self) -> Tuple[CatalogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: CatalogEntry) -> None:
        """Append an entry.

        Raises:
            RegistryFrozenError: If the catalog has been frozen
        """
        if self._frozen:
            raise RegistryFrozenError("Catalog is frozen; modules can only be added at startup")
        self._entries.append(entry)

    def freeze(self) -> None:
        self._frozen = True

    def paths(self) -> List[str]:
        """Resolved paths of every recorded entry."""
        return [entry.path for entry in self._entries]

    def build(self) -> List[CatalogCategory]:
        """Group the recorded entries by category."""
        return build_catalog(self._entries, self.default_category)
