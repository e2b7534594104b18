"""Tests for merging client reorder patches into the stored tree."""

import random
from collections import Counter

import pytest

from nebula.models import ReorderPatch
from nebula.reconcile import reconcile

from tests.conftest import layout, make_tree


def patch_of(spec) -> ReorderPatch:
    """Patch in the dashboard's wire shape: links as [{"id": ...}]."""
    return ReorderPatch.model_validate(
        {"categories": [{"id": cid, "links": [{"id": lid} for lid in lids]} for cid, lids in spec]}
    )


def link_ids(tree):
    return Counter(l.id for c in tree.categories for l in c.links)


def category_ids(tree):
    return {c.id for c in tree.categories}


class TestReconcile:
    def test_full_patch_is_applied_exactly(self):
        tree = make_tree({"a": ["1", "2", "3"], "b": ["4", "5"]})
        patch = patch_of([("b", ["5", "4"]), ("a", ["3", "1", "2"])])
        assert layout(reconcile(tree, patch)) == {"b": ["5", "4"], "a": ["3", "1", "2"]}
        assert list(layout(reconcile(tree, patch))) == ["b", "a"]

    def test_full_patch_matching_current_order_is_identity(self):
        tree = make_tree({"a": ["1", "2"], "b": ["3"]})
        patch = patch_of([("a", ["1", "2"]), ("b", ["3"])])
        assert reconcile(tree, patch) == tree

    def test_empty_patch_keeps_everything(self):
        tree = make_tree({"a": ["1", "2"], "b": ["3"]})
        assert layout(reconcile(tree, ReorderPatch())) == {"a": ["1", "2"], "b": ["3"]}

    def test_cross_category_move(self):
        tree = make_tree({"a": ["1", "2"], "b": ["3"]})
        patch = patch_of([("a", ["2"]), ("b", ["3", "1"])])
        assert layout(reconcile(tree, patch)) == {"a": ["2"], "b": ["3", "1"]}

    def test_unknown_category_is_ignored(self):
        tree = make_tree({"a": ["1"], "b": ["2"]})
        patch = patch_of([("gone", ["1", "2"]), ("b", ["2"])])
        result = reconcile(tree, patch)
        assert layout(result) == {"b": ["2"], "a": ["1"]}

    def test_unknown_link_ids_are_ignored(self):
        tree = make_tree({"a": ["1"]})
        patch = patch_of([("a", ["deleted", "1", "also-deleted"])])
        assert layout(reconcile(tree, patch)) == {"a": ["1"]}

    def test_repeated_link_id_placed_once(self):
        tree = make_tree({"a": ["1", "2"], "b": []})
        patch = patch_of([("a", ["1", "1", "2"]), ("b", ["1", "2"])])
        assert layout(reconcile(tree, patch)) == {"a": ["1", "2"], "b": []}

    def test_repeated_category_placed_once(self):
        tree = make_tree({"a": ["1"], "b": ["2"]})
        patch = patch_of([("a", ["1"]), ("a", ["2"]), ("b", ["2"])])
        assert layout(reconcile(tree, patch)) == {"a": ["1"], "b": ["2"]}

    def test_omitted_links_return_to_end_of_original_category(self):
        tree = make_tree({"a": ["1", "2", "3"], "b": ["4"]})
        # stale client never saw link 2
        patch = patch_of([("a", ["3", "1"]), ("b", ["4"])])
        assert layout(reconcile(tree, patch)) == {"a": ["3", "1", "2"], "b": ["4"]}

    def test_omitted_link_follows_its_category_after_move(self):
        tree = make_tree({"a": ["1", "2"], "b": ["3"]})
        patch = patch_of([("b", ["1", "3"])])
        # "a" was not in the patch; it keeps link 2 and lands after "b"
        assert layout(reconcile(tree, patch)) == {"b": ["1", "3"], "a": ["2"]}

    def test_unmentioned_categories_appended_in_stored_order(self):
        tree = make_tree({"a": ["1"], "b": ["2"], "c": ["3"]})
        patch = patch_of([("c", ["3"])])
        assert list(layout(reconcile(tree, patch))) == ["c", "a", "b"]

    def test_names_come_from_stored_tree(self):
        tree = make_tree({"a": ["1"]})
        tree.categories[0].name = "Renamed elsewhere"
        result = reconcile(tree, patch_of([("a", ["1"])]))
        assert result.categories[0].name == "Renamed elsewhere"

    def test_bare_string_ids_accepted(self):
        tree = make_tree({"a": ["1", "2"]})
        patch = ReorderPatch.model_validate({"categories": [{"id": "a", "links": ["2", "1"]}]})
        assert layout(reconcile(tree, patch)) == {"a": ["2", "1"]}

    def test_malformed_patch_entries(self):
        tree = make_tree({"a": ["1", "2"]})
        patch = ReorderPatch.model_validate(
            {"categories": ["junk", None, {"id": "a", "links": "nope"}, {"links": [{"id": "1"}]}]}
        )
        assert layout(reconcile(tree, patch)) == {"a": ["1", "2"]}

    def test_input_tree_not_mutated(self):
        tree = make_tree({"a": ["1", "2"], "b": []})
        before = tree.model_copy(deep=True)
        reconcile(tree, patch_of([("b", ["2", "1"])]))
        assert tree == before


def _random_case(rng: random.Random):
    n_categories = rng.randint(1, 6)
    spec = {}
    counter = 0
    for c in range(n_categories):
        lids = []
        for _ in range(rng.randint(0, 6)):
            counter += 1
            lids.append(f"l{counter}")
        spec[f"c{c}"] = lids
    tree = make_tree(spec)

    known_categories = list(spec) + ["ghost1", "ghost2"]
    known_links = [lid for lids in spec.values() for lid in lids] + ["ghostlink"]
    entries = []
    for _ in range(rng.randint(0, len(known_categories) + 1)):
        cid = rng.choice(known_categories)
        lids = rng.sample(known_links, rng.randint(0, len(known_links)))
        if lids and rng.random() < 0.3:
            lids.append(rng.choice(lids))
        entries.append((cid, lids))
    return tree, patch_of(entries)


@pytest.mark.parametrize("seed", range(200))
def test_conservation(seed):
    tree, patch = _random_case(random.Random(seed))
    result = reconcile(tree, patch)
    assert link_ids(result) == link_ids(tree)
    assert category_ids(result) == category_ids(tree)
    assert len(result.categories) == len(tree.categories)
    assert all(count == 1 for count in link_ids(result).values())


@pytest.mark.parametrize("seed", range(50))
def test_full_patch_reproduced(seed):
    rng = random.Random(seed)
    tree, _ = _random_case(rng)
    all_links = [l.id for c in tree.categories for l in c.links]
    rng.shuffle(all_links)
    order = [c.id for c in tree.categories]
    rng.shuffle(order)
    # deal every link into some category
    target = {cid: [] for cid in order}
    for lid in all_links:
        target[rng.choice(order)].append(lid)
    patch = patch_of([(cid, target[cid]) for cid in order])
    assert layout(reconcile(tree, patch)) == target
    assert list(layout(reconcile(tree, patch))) == order
