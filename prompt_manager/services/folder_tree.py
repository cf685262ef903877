"""
Pure helpers turning the flat folder list into tree shaped views.

Folders are kept as a flat arena keyed by id; parent links are ids. Nothing in
here mutates its input or performs I/O, so the tree is always rebuilt from the
flat list instead of being patched in place.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from prompt_manager.schemas.folder import FolderNode, FolderOut

logger = logging.getLogger(__name__)


def _sorted(folders: Iterable[FolderOut]) -> List[FolderOut]:
    return sorted(folders, key=lambda f: (f.name.lower(), f.name, f.id))


def _children_index(folders: Sequence[FolderOut]) -> Dict[str, List[FolderOut]]:
    children: Dict[str, List[FolderOut]] = defaultdict(list)
    for folder in folders:
        if folder.parent_id is not None and folder.parent_id != folder.id:
            children[folder.parent_id].append(folder)
    return children


def build_forest(folders: Sequence[FolderOut]) -> List[FolderNode]:
    """
    Group a flat folder list into a forest.

    A folder whose parent is null, or does not resolve inside ``folders``,
    becomes a root. Siblings are ordered by name. Folders that are only
    reachable through a parent cycle are promoted to roots so the build
    always terminates.
    """
    by_id = {f.id: f for f in folders}
    children = _children_index(folders)
    roots = [f for f in folders if f.parent_id is None or f.parent_id not in by_id or f.parent_id == f.id]

    visited = set()

    def build(folder: FolderOut) -> FolderNode:
        visited.add(folder.id)
        kids = []
        for child in _sorted(children.get(folder.id, [])):
            if child.id not in visited:
                kids.append(build(child))
        return FolderNode(
            id=folder.id,
            name=folder.name,
            parent_id=folder.parent_id,
            folder_kind=folder.folder_kind,
            children=kids,
        )

    forest = [build(f) for f in _sorted(roots)]

    for folder in _sorted(folders):
        if folder.id not in visited:
            logger.warning("Folder %s is part of a parent cycle, promoting to root", folder.id)
            forest.append(build(folder))

    return forest


def descendant_ids(folder_id: str, folders: Sequence[FolderOut]) -> List[str]:
    """All folders below ``folder_id`` in depth-first order, excluding itself."""
    children = _children_index(folders)
    result: List[str] = []
    seen = {folder_id}
    stack = list(reversed(_sorted(children.get(folder_id, []))))

    while stack:
        folder = stack.pop()
        if folder.id in seen:
            logger.warning("Parent cycle detected below folder %s at %s", folder_id, folder.id)
            continue
        seen.add(folder.id)
        result.append(folder.id)
        stack.extend(reversed(_sorted(children.get(folder.id, []))))

    return result


def ancestor_chain(folder_id: Optional[str], folders: Sequence[FolderOut]) -> List[str]:
    """
    Folder names from the root down to ``folder_id`` (inclusive), for breadcrumbs.

    Returns an empty list for ``None`` or an unknown id. A dangling parent
    reference ends the chain early instead of failing.
    """
    by_id = {f.id: f for f in folders}
    chain: List[str] = []
    seen = set()
    current = by_id.get(folder_id) if folder_id else None

    while current is not None and current.id not in seen:
        seen.add(current.id)
        chain.append(current.name)
        current = by_id.get(current.parent_id) if current.parent_id else None

    chain.reverse()
    return chain


def subtree_totals(counts: Mapping[str, int], folders: Sequence[FolderOut]) -> Dict[str, int]:
    """Own item count plus the counts of every descendant, per folder."""
    return {
        f.id: counts.get(f.id, 0) + sum(counts.get(d, 0) for d in descendant_ids(f.id, folders))
        for f in folders
    }
