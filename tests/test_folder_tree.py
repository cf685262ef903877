from conftest import folder_out as f

from prompt_manager.schemas.folder import FolderKind, FolderOut
from prompt_manager.services.folder_tree import ancestor_chain, build_forest, descendant_ids, subtree_totals


def sample():
    # work
    # ├── ai
    # │   └── prompts
    # └── docs
    # home
    return [
        f("work", name="Work"),
        f("ai", "work", "AI"),
        f("docs", "work", "Docs"),
        f("prompts", "ai", "Prompts"),
        f("home", name="Home"),
    ]


def test_build_forest_groups_by_parent():
    forest = build_forest(sample())

    assert [n.id for n in forest] == ["home", "work"]
    work = forest[1]
    assert [c.id for c in work.children] == ["ai", "docs"]
    assert [c.id for c in work.children[0].children] == ["prompts"]
    assert forest[0].children == []


def test_build_forest_dangling_parent_becomes_root():
    forest = build_forest([f("a", name="A"), f("orphan", "missing", "Orphan")])
    assert sorted(n.id for n in forest) == ["a", "orphan"]


def test_build_forest_keeps_kind():
    folders = [FolderOut(id="b", user_id="u1", name="Bookmarks", folder_kind=FolderKind.WEBSITE)]
    assert build_forest(folders)[0].folder_kind == FolderKind.WEBSITE


def test_build_forest_is_deterministic():
    folders = sample()
    assert build_forest(folders) == build_forest(list(reversed(folders)))


def test_build_forest_terminates_on_cycle():
    folders = [f("f1", "f2"), f("f2", "f1"), f("root")]
    forest = build_forest(folders)

    seen = []

    def walk(nodes):
        for node in nodes:
            seen.append(node.id)
            walk(node.children)

    walk(forest)
    assert sorted(seen) == ["f1", "f2", "root"]


def test_descendant_ids_closure():
    assert set(descendant_ids("work", sample())) == {"ai", "docs", "prompts"}
    assert descendant_ids("ai", sample()) == ["prompts"]


def test_descendant_ids_excludes_self_and_leaf_is_empty():
    assert "work" not in descendant_ids("work", sample())
    assert descendant_ids("prompts", sample()) == []
    assert descendant_ids("unknown", sample()) == []


def test_descendant_ids_terminates_on_cycle():
    folders = [f("f1", "f2"), f("f2", "f1")]
    assert descendant_ids("f1", folders) == ["f2"]
    assert descendant_ids("f2", folders) == ["f1"]


def test_self_parent_is_not_own_descendant():
    assert descendant_ids("loop", [f("loop", "loop")]) == []


def test_ancestor_chain_root_to_target():
    assert ancestor_chain("prompts", sample()) == ["Work", "AI", "Prompts"]
    assert ancestor_chain("work", sample()) == ["Work"]


def test_ancestor_chain_empty_for_none_and_unknown():
    assert ancestor_chain(None, sample()) == []
    assert ancestor_chain("nope", sample()) == []


def test_ancestor_chain_tolerates_dangling_parent():
    folders = [f("child", "gone", "Child"), f("leaf", "child", "Leaf")]
    assert ancestor_chain("leaf", folders) == ["Child", "Leaf"]


def test_ancestor_chain_terminates_on_cycle():
    folders = [f("f1", "f2", "One"), f("f2", "f1", "Two")]
    assert ancestor_chain("f1", folders) == ["Two", "One"]


def test_subtree_totals_sum_descendants():
    counts = {"ai": 2, "prompts": 3, "docs": 1}
    totals = subtree_totals(counts, sample())

    assert totals["work"] == 6
    assert totals["ai"] == 5
    assert totals["prompts"] == 3
    assert totals["home"] == 0
