from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from app.core.errors import ErrorCollector
from app.models.organization import Organization
from app.repos.org_repo import InMemoryOrgRepo
from app.services import hierarchy


def _chain(repo: InMemoryOrgRepo, length: int) -> list[Organization]:
    """root -> ... -> leaf, returned root first."""
    nodes: list[Organization] = []
    parent_id = None
    for i in range(length):
        org = Organization.new(
            name=f"Org {i}", abbr=f"o{i}", parent_organization_id=parent_id
        )
        repo.add(org)
        nodes.append(org)
        parent_id = org.id
    return nodes


# ---- cycle detection ----


def test_descendant_as_parent_is_a_cycle() -> None:
    repo = InMemoryOrgRepo()
    root, mid, leaf = _chain(repo, 3)
    assert hierarchy.would_create_cycle(repo, leaf.id, root.id) is True


def test_unrelated_parent_is_not_a_cycle() -> None:
    repo = InMemoryOrgRepo()
    root, mid, _ = _chain(repo, 3)
    other = Organization.new(name="Other", abbr="other")
    repo.add(other)
    assert hierarchy.would_create_cycle(repo, other.id, mid.id) is False
    assert hierarchy.would_create_cycle(repo, root.id, other.id) is False


def test_cycle_walk_terminates_on_corrupted_graph() -> None:
    repo = InMemoryOrgRepo()
    a = Organization.new(name="A", abbr="a")
    b = Organization.new(name="B", abbr="b", parent_organization_id=a.id)
    repo.add(replace(a, parent_organization_id=b.id))
    repo.add(b)
    outsider = uuid4()
    assert hierarchy.would_create_cycle(repo, a.id, outsider) is False


def test_missing_parent_ends_the_chain() -> None:
    repo = InMemoryOrgRepo()
    orphan = Organization.new(name="Orphan", abbr="orph", parent_organization_id=uuid4())
    repo.add(orphan)
    assert hierarchy.would_create_cycle(repo, orphan.id, uuid4()) is False
    assert hierarchy.compute_depth(repo, orphan.id) == 0


# ---- depth ----


def test_compute_depth_counts_hops_to_root() -> None:
    repo = InMemoryOrgRepo()
    root, mid, leaf = _chain(repo, 3)
    assert hierarchy.compute_depth(repo, root.id) == 0
    assert hierarchy.compute_depth(repo, mid.id) == 1
    assert hierarchy.compute_depth(repo, leaf.id) == 2


def test_subtree_height() -> None:
    repo = InMemoryOrgRepo()
    root, mid, leaf = _chain(repo, 3)
    assert hierarchy.subtree_height(repo, root.id) == 2
    assert hierarchy.subtree_height(repo, leaf.id) == 0


# ---- check_parent ----


def test_self_parent_rejected() -> None:
    repo = InMemoryOrgRepo()
    (root,) = _chain(repo, 1)
    errors = ErrorCollector()
    hierarchy.check_parent(repo, errors, root.id, max_depth=5, org_id=root.id)
    assert [e.field for e in errors.errors] == ["parentOrganizationId"]
    assert "own parent" in errors.errors[0].message


def test_missing_parent_rejected() -> None:
    repo = InMemoryOrgRepo()
    errors = ErrorCollector()
    hierarchy.check_parent(repo, errors, uuid4(), max_depth=5)
    assert "not found" in errors.errors[0].message


def test_child_under_level_four_is_allowed_under_level_five_is_not() -> None:
    repo = InMemoryOrgRepo()
    nodes = _chain(repo, 5)

    ok = ErrorCollector()
    hierarchy.check_parent(repo, ok, nodes[3].id, max_depth=5)
    assert not ok

    too_deep = ErrorCollector()
    hierarchy.check_parent(repo, too_deep, nodes[4].id, max_depth=5)
    assert "cannot exceed 5 levels" in too_deep.errors[0].message


def test_reparent_counts_moved_subtree_height() -> None:
    repo = InMemoryOrgRepo()
    deep = _chain(repo, 3)
    # a separate two-level subtree
    top = Organization.new(name="Top", abbr="top")
    repo.add(top)
    repo.add(Organization.new(name="Kid", abbr="kid", parent_organization_id=top.id))

    errors = ErrorCollector()
    # top would sit at level 4 and its child at level 5
    hierarchy.check_parent(repo, errors, deep[2].id, max_depth=5, org_id=top.id)
    assert not errors

    errors = ErrorCollector()
    hierarchy.check_parent(repo, errors, deep[2].id, max_depth=4, org_id=top.id)
    assert errors


def test_reparent_under_own_descendant_is_cycle() -> None:
    repo = InMemoryOrgRepo()
    root, mid, leaf = _chain(repo, 3)
    errors = ErrorCollector()
    hierarchy.check_parent(repo, errors, leaf.id, max_depth=10, org_id=root.id)
    assert "circular" in errors.errors[0].message
