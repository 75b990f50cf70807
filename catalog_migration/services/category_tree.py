from __future__ import annotations

import re
from collections.abc import Iterable

from ..models.records import CodeLabelRecord, TreeNode

"""Category hierarchy reconstruction.

Category codes encode their ancestry positionally: every 2-digit pair is one
level, and a code's parent is the code minus its last pair ("0101" -> "01").
The builder keeps an explicit id -> node map and derives parents only through
``parent_code``.

A code whose parent code is absent from the input is left unattached: it is
kept in the internal map but reachable from no root, so it (and anything
below it) is missing from the forest. Callers that need completeness either
pre-validate with ``find_orphan_codes`` or run with the FAIL orphan policy.
"""

__all__ = [
    "LEVEL_WIDTH",
    "is_valid_category_code",
    "parent_code",
    "build_category_tree",
    "find_orphan_codes",
]

LEVEL_WIDTH = 2

_CODE_RE = re.compile(r"[0-9]{2,}")


def is_valid_category_code(code: str) -> bool:
    """True for codes of two or more digits with an even length."""
    return bool(_CODE_RE.fullmatch(code)) and len(code) % LEVEL_WIDTH == 0


def parent_code(code: str) -> str | None:
    """Return the parent code, or None for a top-level code."""
    if len(code) <= LEVEL_WIDTH:
        return None
    return code[:-LEVEL_WIDTH]


def build_category_tree(records: Iterable[CodeLabelRecord]) -> list[TreeNode]:
    """Build the category forest from valid (code, label) records.

    Records are processed shortest code first (stable, so equal-length codes
    keep input order), which puts a parent in the map before any of its
    children try to attach. Returns the top-level nodes (2-character ids)
    with their subtrees.
    """
    nodes: dict[str, TreeNode] = {}

    for record in sorted(records, key=lambda r: len(r.code)):
        node = nodes.get(record.code)
        if node is not None:
            # Repeated code: last label wins, the node is already attached
            node.name = record.label
            continue
        node = TreeNode(id=record.code, name=record.label)
        nodes[record.code] = node

        parent = parent_code(record.code)
        if parent is not None:
            parent_node = nodes.get(parent)
            if parent_node is not None:
                parent_node.children.append(node)

    return [node for node in nodes.values() if len(node.id) == LEVEL_WIDTH]


def find_orphan_codes(records: Iterable[CodeLabelRecord]) -> list[str]:
    """List codes whose direct parent code is not part of ``records``.

    Only the first missing level is reported; descendants of an orphan have
    their parent present and are lost along with it.
    """
    codes = [r.code for r in records]
    known = set(codes)
    orphans = []
    for code in sorted(set(codes), key=lambda c: (len(c), c)):
        parent = parent_code(code)
        if parent is not None and parent not in known:
            orphans.append(code)
    return orphans
