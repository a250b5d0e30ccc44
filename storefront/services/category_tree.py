from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional


def build_category_tree(
    categories: Iterable[Any],
    serialize: Optional[Callable[[Any], dict]] = None,
) -> list[dict]:
    """Nest a flat category list into a forest.

    Each node is a copy of the category dict with a ``children`` list. A node
    whose ``parent_id`` is empty or points outside the list becomes a root.
    Roots and children keep the input order. Cycles are not detected here;
    the category service refuses to store them.
    """
    nodes: dict[Any, dict] = {}
    ordered: list[dict] = []
    for category in categories:
        data = dict(category) if isinstance(category, Mapping) else serialize(category)
        node = {**data, "children": []}
        nodes[node["id"]] = node
        ordered.append(node)

    roots: list[dict] = []
    for node in ordered:
        parent = nodes.get(node.get("parent_id"))
        if parent is not None and parent is not node:
            parent["children"].append(node)
        else:
            roots.append(node)
    return roots
