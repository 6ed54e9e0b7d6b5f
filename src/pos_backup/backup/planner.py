"""Dependency ordering for restore and clear-all.

Tables are inserted parents-first and deleted children-first so that
foreign-key references are always satisfiable, even on engines where
enforcement cannot be switched off.

Usage:
    from pos_backup.backup.planner import DependencyPlanner

    planner = DependencyPlanner()
    plan = planner.plan_restore(live_tables={"users", "sales", "sale_items"})
    plan.insert_order   # ['users', 'sales', 'sale_items']
    plan.delete_order   # ['sale_items', 'sales', 'users']
"""

import logging
from collections.abc import Iterable

from pos_backup.backup.models import RestorePlan

logger = logging.getLogger(__name__)

# Core tables in forward dependency order
CORE_TABLES: list[str] = [
    "users",
    "categories",
    "suppliers",
    "customers",
    "settings",
    "products",
    "sales",
    "sale_items",
    "purchases",
    "purchase_items",
]

DEFAULT_EXTENSION_TABLES: list[str] = [
    "tax_categories",
    "expense_categories",
    "label_templates",
    "returns",
    "return_items",
    "expenses",
    "inventory_adjustments",
    "print_jobs",
]

# table -> tables it references
DEPENDENCIES: dict[str, set[str]] = {
    "products": {"categories", "suppliers"},
    "sales": {"customers", "users"},
    "sale_items": {"sales", "products"},
    "purchases": {"suppliers", "users"},
    "purchase_items": {"purchases", "products"},
    "returns": {"sales", "users"},
    "return_items": {"returns", "products"},
    "expenses": {"expense_categories", "suppliers", "users"},
    "inventory_adjustments": {"products", "users"},
    "print_jobs": {"label_templates", "users"},
}


def topological_sort(dependencies: dict[str, set[str]], tables: list[str]) -> list[str]:
    """Topological sort of tables based on FK dependencies.

    Returns tables in forward order: parent tables first, child tables last.
    Ties keep the order of ``tables``; a cycle is broken at the table where
    it is detected.

    Args:
        dependencies: FK dependency graph (table -> set of referenced tables).
        tables: List of table names to sort.

    Returns:
        Tables sorted so that parent tables come before child tables.

    Example:
        >>> topological_sort({"b": {"a"}}, ["b", "a"])
        ['a', 'b']
    """
    # Filter dependencies to only include relevant tables
    relevant = {t: dependencies.get(t, set()) & set(tables) for t in tables}

    sorted_tables: list[str] = []
    visited: set[str] = set()
    visiting: set[str] = set()  # For cycle detection

    def visit(table: str) -> None:
        if table in visited:
            return
        if table in visiting:
            logger.debug("Dependency cycle through %s; breaking it here", table)
            return
        visiting.add(table)
        # Sorted so the result does not depend on set iteration order
        for dep in sorted(relevant.get(table, set())):
            visit(dep)
        visiting.discard(table)
        visited.add(table)
        sorted_tables.append(table)

    for table in tables:
        visit(table)

    return sorted_tables


class DependencyPlanner:
    """Orders the known tables for insertion and deletion.

    Args:
        extension_tables: Optional tables beyond the core set.  Defaults to
            ``DEFAULT_EXTENSION_TABLES``.  Tables without an entry in the
            dependency graph are placed after everything they could
            reference.
        dependencies: Override for the dependency graph.
    """

    def __init__(
        self,
        extension_tables: Iterable[str] | None = None,
        dependencies: dict[str, set[str]] | None = None,
    ) -> None:
        extensions = (
            list(extension_tables) if extension_tables is not None else DEFAULT_EXTENSION_TABLES
        )
        self.dependencies = dependencies if dependencies is not None else DEPENDENCIES
        self._known = list(dict.fromkeys([*CORE_TABLES, *extensions]))

    @property
    def known_tables(self) -> list[str]:
        """Every table the engine snapshots, in forward dependency order."""
        return topological_sort(self.dependencies, self._known)

    def insert_order(self, tables: Iterable[str]) -> list[str]:
        """Forward order for ``tables``: known tables first, unknown ones appended."""
        requested = list(dict.fromkeys(tables))
        requested_set = set(requested)
        known = [t for t in self._known if t in requested_set]
        unknown = [t for t in requested if t not in set(self._known)]
        return topological_sort(self.dependencies, known) + unknown

    def delete_order(self, tables: Iterable[str]) -> list[str]:
        """Reverse of ``insert_order``: children before parents."""
        return list(reversed(self.insert_order(tables)))

    def plan_restore(self, live_tables: Iterable[str]) -> RestorePlan:
        """Intersect the known tables with the live ones and order them.

        Live tables the engine does not know about are left untouched.
        """
        live = set(live_tables)
        present = [t for t in self._known if t in live]
        forward = self.insert_order(present)
        return RestorePlan(insert_order=forward, delete_order=list(reversed(forward)))
