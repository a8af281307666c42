"""Category tree lookups.

Builds ancestor/descendant lookups over the flat category list returned
by a ``CategoryProvider``. Unknown ids and dangling parent references are
treated as absent rather than as errors.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from storerec.models import Category

# Configure module logger
logger = logging.getLogger(__name__)


class CategoryIndex:
    """Index of categories by id and of children by parent id.

    Roots never appear as keys of ``children_by_parent``. A category whose
    declared parent is missing from the list is still filed under that
    parent id, but ``ancestors`` stops at it as if it were a root.
    """

    def __init__(
        self,
        by_id: Dict[str, Category],
        children_by_parent: Dict[str, List[str]],
    ):
        self.by_id = by_id
        self.children_by_parent = children_by_parent

    @classmethod
    def build(cls, categories: Iterable[Category]) -> "CategoryIndex":
        """Index a flat category list.

        Args:
            categories: Categories in any order. Later duplicates of an id
                replace earlier ones.

        Returns:
            A ready-to-query index.
        """
        by_id: Dict[str, Category] = {}
        for category in categories:
            by_id[category.id] = category

        children_by_parent: Dict[str, List[str]] = {}
        orphans = 0
        for category in by_id.values():
            if category.parent_id is None:
                continue
            children_by_parent.setdefault(category.parent_id, []).append(category.id)
            if category.parent_id not in by_id:
                orphans += 1

        if orphans:
            logger.warning(
                "Categories reference unknown parents, treating them as roots",
                extra={"orphan_count": orphans},
            )

        logger.debug(
            "Built category index",
            extra={"num_categories": len(by_id), "num_parents": len(children_by_parent)},
        )
        return cls(by_id, children_by_parent)

    def descendants(self, category_id: Optional[str]) -> List[str]:
        """Breadth-first descendants of ``category_id``, excluding itself."""
        if category_id is None:
            return []

        seen: Set[str] = {category_id}
        result: List[str] = []
        frontier = deque(self.children_by_parent.get(category_id, []))
        while frontier:
            child = frontier.popleft()
            if child in seen:
                continue
            seen.add(child)
            result.append(child)
            frontier.extend(self.children_by_parent.get(child, []))
        return result

    def ancestors(self, category_id: Optional[str]) -> List[str]:
        """Ancestors of ``category_id``, nearest first."""
        result: List[str] = []
        category = self.by_id.get(category_id) if category_id is not None else None
        if category is None:
            return result

        seen: Set[str] = {category.id}
        parent_id = category.parent_id
        while parent_id is not None and parent_id in self.by_id and parent_id not in seen:
            result.append(parent_id)
            seen.add(parent_id)
            parent_id = self.by_id[parent_id].parent_id
        return result

    def subtree(self, category_id: Optional[str]) -> Set[str]:
        """``category_id`` together with all of its descendants.

        Empty for ids the index does not know, so a product pointing at a
        missing category behaves exactly like an uncategorized one.
        """
        if category_id is None or category_id not in self.by_id:
            return set()
        return {category_id, *self.descendants(category_id)}

    def __len__(self) -> int:
        return len(self.by_id)
