"""
Trust Debt Core - ShortLex Ordering v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Canonical total order over category identifiers.
Shorter ids (parents) sort before longer ids (children), then plain
code-point string comparison. No locale is involved.
"""

import string
from dataclasses import replace
from typing import Iterable, List, Tuple

from .types import Category


PARENT_CODES = string.ascii_uppercase
CHILD_SUFFIXES = string.ascii_lowercase


def shortlex_key(category_id: str) -> Tuple[int, str]:
    """Sort key: id length first, then lexicographic."""
    return (len(category_id), category_id)


def child_id(parent_id: str, index: int) -> str:
    """Child code for the index-th child of a parent."""
    if index >= len(CHILD_SUFFIXES):
        raise ValueError(f"Parent {parent_id} cannot hold more than {len(CHILD_SUFFIXES)} children")
    return parent_id + CHILD_SUFFIXES[index]


def parent_code(index: int) -> str:
    if index >= len(PARENT_CODES):
        raise ValueError(f"No more than {len(PARENT_CODES)} parent categories are supported")
    return PARENT_CODES[index]


def assign_ranks(categories: Iterable[Category]) -> List[Category]:
    """
    Assign shortlex_rank to a finalized taxonomy.

    Every depth-0 category precedes every depth-1 category. Ids are
    structured so that depth and id length agree; a mismatch is a bug
    in the generator and raises.
    """
    categories = list(categories)
    for cat in categories:
        expected = 1 if cat.parent_id is None else len(cat.parent_id) + 1
        if len(cat.id) != expected:
            raise ValueError(f"Category id {cat.id!r} does not encode its depth")

    ids = [c.id for c in categories]
    if len(set(ids)) != len(ids):
        raise ValueError("Category ids must be unique")

    ordered = sorted(categories, key=lambda c: (c.depth, shortlex_key(c.id)))
    return [replace(cat, shortlex_rank=rank) for rank, cat in enumerate(ordered)]


def is_shortlex_ordered(categories: List[Category]) -> bool:
    """True when ranks are 0..n-1 and follow the comparator."""
    ranked = sorted(categories, key=lambda c: c.shortlex_rank)
    if [c.shortlex_rank for c in ranked] != list(range(len(ranked))):
        return False
    keys = [(c.depth, shortlex_key(c.id)) for c in ranked]
    return all(a < b for a, b in zip(keys, keys[1:]))


__all__ = [
    "shortlex_key",
    "child_id",
    "parent_code",
    "assign_ranks",
    "is_shortlex_ordered",
]
