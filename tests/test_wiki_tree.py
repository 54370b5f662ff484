import copy

import pytest

from server.src.modules.wiki_errors import DataIntegrityError
from server.src.modules.wiki_tree import build_tree, flatten, unreachable_pages


def _page(page_id, parent_id="", order=0, name=None):
    return {"id": page_id, "parent_id": parent_id, "display_order": order, "name": name or page_id}


def test_build_and_flatten_preorder():
    pages = [_page("p2", order=1), _page("p3", parent_id="p1"), _page("p1", order=0)]
    tree = build_tree(pages)
    assert [node["id"] for node in tree] == ["p1", "p2"]
    assert [child["id"] for child in tree[0]["children"]] == ["p3"]
    assert tree[1]["children"] == []

    flat = [(node["id"], depth) for node, depth in flatten(tree)]
    assert flat == [("p1", 0), ("p3", 1), ("p2", 0)]


def test_flatten_is_lazy_and_one_shot():
    tree = build_tree([_page("a"), _page("b", order=1)])
    walk = flatten(tree)
    node, depth = next(walk)
    assert (node["id"], depth) == ("a", 0)
    assert [n["id"] for n, _ in walk] == ["b"]
    assert list(walk) == []


def test_build_tree_does_not_mutate_input():
    pages = [_page("a"), _page("b", parent_id="a"), _page("c", parent_id="b")]
    snapshot = copy.deepcopy(pages)
    tree = build_tree(pages)
    assert pages == snapshot
    assert "children" not in pages[0]
    assert tree[0]["children"][0]["children"][0]["id"] == "c"


def test_equal_display_order_falls_back_to_id():
    pages = [_page("b", order=0), _page("c", order=0), _page("a", order=0)]
    assert [node["id"] for node in build_tree(pages)] == ["a", "b", "c"]
    assert [node["id"] for node in build_tree(list(reversed(pages)))] == ["a", "b", "c"]


def test_deep_chain_depths():
    pages = [_page("n0")] + [_page(f"n{i}", parent_id=f"n{i - 1}") for i in range(1, 6)]
    depths = {node["id"]: depth for node, depth in flatten(build_tree(pages))}
    assert depths == {f"n{i}": i for i in range(6)}


def test_dangling_and_cyclic_pages_are_left_out():
    pages = [
        _page("root"),
        _page("orphan", parent_id="missing"),
        _page("x", parent_id="y"),
        _page("y", parent_id="x"),
    ]
    tree = build_tree(pages)
    assert [node["id"] for node in tree] == ["root"]
    assert unreachable_pages(pages) == ["orphan", "x", "y"]


def test_strict_build_reports_unreachable_pages():
    pages = [_page("root"), _page("orphan", parent_id="missing")]
    with pytest.raises(DataIntegrityError) as exc_info:
        build_tree(pages, strict=True)
    assert exc_info.value.page_ids == ["orphan"]
    assert exc_info.value.status_code == 500


def test_empty_input():
    assert build_tree([]) == []
    assert list(flatten([])) == []
    assert unreachable_pages([]) == []
