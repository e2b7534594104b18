"""
Merge a client drag-and-drop ordering into the stored link tree.

The client only sends ids in their new order, and only for the categories it
knew about when the page was rendered. The stored tree is the source of truth
for what exists: the patch can reorder and move links between known
categories, nothing more. Every stored link and category comes out exactly
once.
"""

import logging
from typing import Dict, List

from .models import Category, Link, LinkTree, ReorderPatch

logger = logging.getLogger(__name__)


def reconcile(tree: LinkTree, patch: ReorderPatch) -> LinkTree:
    pool: Dict[str, Link] = {}
    owner: Dict[str, str] = {}
    for category in tree.categories:
        for link in category.links:
            pool[link.id] = link
            owner[link.id] = category.id
    unplaced = set(pool)
    stored = {c.id: c for c in tree.categories}

    result: List[Category] = []
    by_id: Dict[str, Category] = {}

    # 1. categories named by the patch, in patch order; unknown ids are ignored
    for entry in patch.categories:
        source = stored.get(entry.id)
        if source is None or entry.id in by_id:
            continue
        links = []
        for link_id in entry.links:
            if link_id in unplaced:
                unplaced.discard(link_id)
                links.append(pool[link_id])
        category = Category(id=source.id, name=source.name, links=links)
        result.append(category)
        by_id[category.id] = category

    # 2. categories the patch never mentioned keep their order and whatever
    # links the patch did not move elsewhere
    for source in tree.categories:
        if source.id in by_id:
            continue
        links = []
        for link in source.links:
            if link.id in unplaced:
                unplaced.discard(link.id)
                links.append(link)
        category = Category(id=source.id, name=source.name, links=links)
        result.append(category)
        by_id[category.id] = category

    # 3. links the patch left out go back to the end of their original category
    if unplaced:
        logger.debug("Reorder patch omitted %d links, reinserting", len(unplaced))
        for category in tree.categories:
            for link in category.links:
                if link.id not in unplaced:
                    continue
                unplaced.discard(link.id)
                target = by_id.get(owner[link.id]) or result[0]
                target.links.append(link)

    return LinkTree(categories=[c.model_copy(deep=True) for c in result])
