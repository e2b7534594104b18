"""
Link hierarchy persistence and CRUD.

The tree is stored as one JSON document. Every request loads it, mutates a
copy in memory and writes the whole thing back (last writer wins).
"""

import json
import logging
import uuid
from typing import Any, Callable, List, Set, Tuple
from urllib.parse import quote, urlsplit

from .errors import ErrorKind, Result
from .kv import KVStore
from .models import Category, Link, LinkTree, coerce_str

logger = logging.getLogger(__name__)

LINKS_KEY = "nebula_links_v1"
DEFAULT_CATEGORY_NAME = "✨ Getting started (rename me)"
FAVICON_ENDPOINT = "https://www.google.com/s2/favicons"


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_http_url(value: str) -> bool:
    try:
        parsed = urlsplit(value)
        host = parsed.hostname
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(host)


def favicon_from_url(value: str) -> str:
    """Favicon service URL for the link's origin (or the raw string if unparseable)."""
    origin = value
    try:
        parsed = urlsplit(value)
        if parsed.scheme and parsed.netloc:
            origin = f"{parsed.scheme}://{parsed.netloc}"
    except ValueError:
        pass
    return f"{FAVICON_ENDPOINT}?sz=128&domain_url={quote(origin, safe='')}"


class LinkStore:
    def __init__(self, kv: KVStore, id_factory: Callable[[], str] = new_id):
        self.kv = kv
        self.new_id = id_factory

    # ---- persistence ----

    def default_tree(self) -> LinkTree:
        return LinkTree(categories=[Category(id=self.new_id(), name=DEFAULT_CATEGORY_NAME)])

    def load(self) -> LinkTree:
        raw = self.kv.get(LINKS_KEY)
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
                logger.warning("Stored link tree is not valid JSON, reseeding")
            if isinstance(parsed, dict) and isinstance(parsed.get("categories"), list):
                categories, reassigned = self._repair(parsed)
                if categories:
                    tree = LinkTree(categories=categories)
                    if reassigned:
                        # generated ids must survive the next load
                        self.save(tree)
                        logger.info("Assigned %d missing or duplicate ids in stored link tree", reassigned)
                    return tree
                # nothing usable survived; persist the seed so its id is stable

        seed = self.default_tree()
        self.save(seed)
        logger.info("Seeded default link tree")
        return seed

    def save(self, tree: LinkTree) -> None:
        self.kv.put(LINKS_KEY, json.dumps(tree.model_dump(), indent=2, ensure_ascii=False))

    def normalize(self, raw: Any) -> LinkTree:
        """Repair a parsed tree: fill ids, trim names, drop unusable entries.

        Never raises; whatever survives is returned, or the default tree.
        """
        categories, _ = self._repair(raw)
        if not categories:
            return self.default_tree()
        return LinkTree(categories=categories)

    def _repair(self, raw: Any) -> Tuple[List[Category], int]:
        """Usable categories, plus how many ids had to be generated."""
        categories = raw.get("categories") if isinstance(raw, dict) else None
        if not isinstance(categories, list):
            categories = []

        seen_categories: Set[str] = set()
        seen_links: Set[str] = set()
        dropped = 0
        reassigned = 0
        out = []
        for c in categories:
            if not isinstance(c, dict):
                dropped += 1
                continue
            name = coerce_str(c.get("name")).strip()
            if not name:
                dropped += 1
                continue
            category_id = coerce_str(c.get("id"))
            if not category_id or category_id in seen_categories:
                category_id = self.new_id()
                reassigned += 1
            seen_categories.add(category_id)

            links = []
            for l in c.get("links") if isinstance(c.get("links"), list) else []:
                if not isinstance(l, dict):
                    dropped += 1
                    continue
                title = coerce_str(l.get("title")).strip()
                url = coerce_str(l.get("url")).strip()
                if not title or not is_valid_http_url(url):
                    dropped += 1
                    continue
                link_id = coerce_str(l.get("id"))
                if not link_id or link_id in seen_links:
                    link_id = self.new_id()
                    reassigned += 1
                seen_links.add(link_id)
                icon = coerce_str(l.get("icon")).strip() or favicon_from_url(url)
                links.append(Link(id=link_id, title=title, url=url, icon=icon))
            out.append(Category(id=category_id, name=name, links=links))

        if dropped:
            logger.warning("Dropped %d unusable entries from stored link tree", dropped)
        return out, reassigned

    def mutate(self, fn: Callable[[LinkTree], Result]) -> Result:
        """Load, apply fn, persist on success."""
        result = fn(self.load())
        if result.ok:
            self.save(result.value)
        return result

    # ---- mutations; each works on a copy and returns Result[LinkTree] ----

    def create_link(
        self,
        tree: LinkTree,
        title: str,
        url: str,
        icon: str = "",
        category_id: str = "",
        category_name: str = "",
    ) -> Result:
        title, url, icon = title.strip(), url.strip(), icon.strip()
        category_name = category_name.strip()
        if not title or not url:
            return Result.failure(ErrorKind.VALIDATION, "title/url required")
        if not is_valid_http_url(url):
            return Result.failure(ErrorKind.VALIDATION, "invalid url")

        tree = tree.model_copy(deep=True)
        target = None
        if category_name:
            target = next((c for c in tree.categories if c.name == category_name), None)
            if target is None:
                target = Category(id=self.new_id(), name=category_name)
                tree.categories.append(target)
        elif category_id:
            target = tree.find_category(category_id)
        if target is None:
            if not tree.categories:
                return Result.failure(ErrorKind.NOT_FOUND, "no category to add to")
            target = tree.categories[0]

        target.links.append(
            Link(id=self.new_id(), title=title, url=url, icon=icon or favicon_from_url(url))
        )
        return Result.success(tree)

    def update_link(
        self,
        tree: LinkTree,
        link_id: str,
        title: str,
        url: str,
        icon: str = "",
        move_to_category_id: str = "",
    ) -> Result:
        title, url, icon = title.strip(), url.strip(), icon.strip()
        if not link_id:
            return Result.failure(ErrorKind.VALIDATION, "linkId required")
        if not title or not url:
            return Result.failure(ErrorKind.VALIDATION, "title/url required")
        if not is_valid_http_url(url):
            return Result.failure(ErrorKind.VALIDATION, "invalid url")

        tree = tree.model_copy(deep=True)
        found = tree.find_link(link_id)
        if found is None:
            return Result.failure(ErrorKind.NOT_FOUND, "not found")
        category, link = found

        link.title = title
        link.url = url
        link.icon = icon or favicon_from_url(url)

        if move_to_category_id and move_to_category_id != category.id:
            target = tree.find_category(move_to_category_id)
            if target is not None:
                category.links = [l for l in category.links if l.id != link_id]
                target.links.append(link)
        return Result.success(tree)

    def delete_link(self, tree: LinkTree, link_id: str) -> Result:
        if not link_id:
            return Result.failure(ErrorKind.VALIDATION, "linkId required")
        tree = tree.model_copy(deep=True)
        deleted = False
        for category in tree.categories:
            before = len(category.links)
            category.links = [l for l in category.links if l.id != link_id]
            if len(category.links) != before:
                deleted = True
        if not deleted:
            return Result.failure(ErrorKind.NOT_FOUND, "not found")
        return Result.success(tree)

    def rename_category(self, tree: LinkTree, category_id: str, new_name: str) -> Result:
        new_name = new_name.strip()
        if not category_id or not new_name:
            return Result.failure(ErrorKind.VALIDATION, "categoryId/newName required")
        tree = tree.model_copy(deep=True)
        category = tree.find_category(category_id)
        if category is None:
            return Result.failure(ErrorKind.NOT_FOUND, "not found")
        category.name = new_name
        return Result.success(tree)
