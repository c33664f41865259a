"""Table and column naming helpers.

Only the fixed English rules needed to map ``<name>_id`` columns to table
names are implemented; irregular plurals are not.
"""

from __future__ import annotations

from collections.abc import Callable

ID_SUFFIX = "_id"


def pluralize(word: str) -> str:
    """Pluralize a table name.

    Examples:
        >>> pluralize("category")
        'categories'
        >>> pluralize("box")
        'boxes'
        >>> pluralize("user")
        'users'
    """
    if not word:
        return word
    if word.endswith("y") and not word.endswith(("ay", "ey", "iy", "oy", "uy")):
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Singularize a table name (``ies`` -> ``y``, trailing ``s`` dropped)."""
    if not word:
        return word
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("s"):
        return word[:-1]
    return word


def is_reference_column(column_name: str) -> bool:
    """Check if a column looks like a reference: ``*_id`` but not ``id``."""
    return isinstance(column_name, str) and column_name != "id" and column_name.endswith(ID_SUFFIX)


def resolve_table(column_name: str, exists: Callable[[str], bool]) -> str | None:
    """Resolve the table a ``*_id`` column refers to.

    The pluralized remainder is tried first, then the literal remainder.

    Args:
        column_name: Column name ending with ``_id``
        exists: Predicate telling whether a candidate table is usable

    Returns:
        The first candidate accepted by ``exists``, or None
    """
    if not is_reference_column(column_name):
        return None

    base_name = column_name[: -len(ID_SUFFIX)]
    if not base_name:
        return None

    for candidate in (pluralize(base_name), base_name):
        if exists(candidate):
            return candidate
    return None


# Columns that point back at their own table whatever the table is called
SELF_REFERENCE_COLUMNS = frozenset(
    {
        "parent_id",
        "ancestor_id",
        "child_id",
        "reply_to_id",
        "replied_to_id",
        "reference_id",
        "original_id",
        "source_id",
        "target_id",
        "superior_id",
        "manager_id",
        "supervisor_id",
        "predecessor_id",
        "successor_id",
        "previous_id",
        "next_id",
        "related_id",
        "duplicate_id",
        "clone_id",
        "copy_id",
        "forwarded_id",
    }
)

HIERARCHY_PREFIXES = (
    "parent",
    "child",
    "ancestor",
    "descendant",
    "superior",
    "subordinate",
    "manager",
    "supervisor",
)

LINK_PREFIXES = (
    "related_",
    "linked_",
    "connected_",
    "associated_",
    "referenced_",
    "previous_",
    "next_",
    "original_",
    "copy_",
    "source_",
    "target_",
)


def is_self_reference_column(column_name: str, table: str) -> bool:
    """Check if a ``*_id`` column likely references its own table.

    Examples:
        >>> is_self_reference_column("parent_id", "categories")
        True
        >>> is_self_reference_column("comment_id", "comments")
        True
        >>> is_self_reference_column("user_id", "comments")
        False
    """
    if not is_reference_column(column_name):
        return False
    if column_name in SELF_REFERENCE_COLUMNS:
        return True

    singular = singularize(table)
    if column_name == f"{singular}{ID_SUFFIX}":
        return True
    for prefix in HIERARCHY_PREFIXES:
        if column_name.startswith((f"{prefix}_{singular}{ID_SUFFIX}", f"{prefix}_of{ID_SUFFIX}")):
            return True
    return column_name.startswith(LINK_PREFIXES)
