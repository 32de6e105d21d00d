"""Diff engine for comparing blobs and trees."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from zengit.core.objects import Commit, Tree

logger = logging.getLogger(__name__)

# path -> (mode, blob id)
TreeFiles = Dict[str, Tuple[str, str]]


@dataclass(frozen=True)
class DiffStat:
    """Number of inserted and deleted lines between two versions of a file."""
    added: int = 0
    deleted: int = 0

    def __add__(self, other: 'DiffStat') -> 'DiffStat':
        return DiffStat(self.added + other.added, self.deleted + other.deleted)

    def __bool__(self) -> bool:
        return bool(self.added or self.deleted)


BINARY_CHANGE = DiffStat(1, 1)


def is_binary(data: bytes) -> bool:
    """Content with a NUL byte or invalid UTF-8 is treated as binary."""
    if b'\0' in data:
        return True
    try:
        data.decode('utf-8')
    except UnicodeDecodeError:
        return True
    return False


def edit_distance(a: Sequence, b: Sequence) -> int:
    """
    Length of the shortest edit script turning ``a`` into ``b``.

    Myers' greedy O((N+M)D) algorithm. Only insertions and deletions
    count, so D = inserted + deleted.
    """
    n, m = len(a), len(b)
    max_d = n + m
    offset = max_d
    v = [0] * (2 * max_d + 2)

    for d in range(max_d + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[offset + k - 1] < v[offset + k + 1]):
                x = v[offset + k + 1]
            else:
                x = v[offset + k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[offset + k] = x
            if x >= n and y >= m:
                return d
    return max_d


def line_diff(old_lines: Sequence, new_lines: Sequence) -> DiffStat:
    """Count added and deleted lines of a minimal edit script."""
    # Common prefix and suffix never take part in the edit script
    start = 0
    limit = min(len(old_lines), len(new_lines))
    while start < limit and old_lines[start] == new_lines[start]:
        start += 1
    old_end, new_end = len(old_lines), len(new_lines)
    while old_end > start and new_end > start and old_lines[old_end - 1] == new_lines[new_end - 1]:
        old_end -= 1
        new_end -= 1

    a = old_lines[start:old_end]
    b = new_lines[start:new_end]
    if not a:
        return DiffStat(len(b), 0)
    if not b:
        return DiffStat(0, len(a))

    d = edit_distance(a, b)
    deleted = (d + len(a) - len(b)) // 2
    return DiffStat(d - deleted, deleted)


def content_diff(old: Optional[bytes], new: Optional[bytes]) -> DiffStat:
    """
    Line statistics between two blob contents.

    ``None`` stands for an absent file. Changed binary content reports
    one added and one deleted line.
    """
    old = old or b''
    new = new or b''
    if old == new:
        return DiffStat()
    if is_binary(old) or is_binary(new):
        return BINARY_CHANGE
    return line_diff(old.splitlines(keepends=True), new.splitlines(keepends=True))


class DiffEngine:
    """
    Engine for computing diffs between blobs, trees and commits.

    Supports:
    - Blob diffing (line statistics)
    - Tree flattening
    - Tree-to-tree diffing that skips identical subtrees
    """

    def __init__(self, repo):
        """
        Initialize diff engine.

        Args:
            repo: Repository instance
        """
        self.repo = repo

    def blob_data(self, oid: Optional[str]) -> Optional[bytes]:
        if oid is None:
            return None
        return self.repo.get(oid)[1]

    def diff_blobs(self, old_oid: Optional[str], new_oid: Optional[str]) -> DiffStat:
        """Line statistics between two blobs (either may be None)."""
        if old_oid == new_oid:
            return DiffStat()
        return content_diff(self.blob_data(old_oid), self.blob_data(new_oid))

    def read_tree(self, tree_oid: str) -> Tree:
        tree = self.repo.read_object(tree_oid)
        if not isinstance(tree, Tree):
            raise ValueError(f"{tree_oid} is a {tree.type}, not a tree")
        return tree

    def commit_tree(self, commit_oid: Optional[str]) -> Optional[str]:
        """Tree id of a commit, or None for no commit."""
        if commit_oid is None:
            return None
        commit = self.repo.read_object(commit_oid)
        if not isinstance(commit, Commit):
            raise ValueError(f"{commit_oid} is a {commit.type}, not a commit")
        return commit.tree

    def flatten_tree(self, tree_oid: Optional[str], prefix: str = '') -> TreeFiles:
        """
        Recursively list the files of a tree.

        Returns:
            Dict of {path: (mode, blob id)}; gitlinks are left out
        """
        files: TreeFiles = {}
        if tree_oid is None:
            return files
        for entry in self.read_tree(tree_oid).entries:
            path = f"{prefix}{entry.name}"
            if entry.type == 'blob':
                files[path] = (entry.mode, entry.hash)
            elif entry.type == 'tree':
                files.update(self.flatten_tree(entry.hash, f"{path}/"))
        return files

    def tree_files(self, tree_oid: Optional[str]) -> Dict[str, str]:
        """Flattened tree as {path: blob id}."""
        return {path: oid for path, (_, oid) in self.flatten_tree(tree_oid).items()}

    def lookup_path(self, tree_oid: Optional[str], path: str) -> Optional[str]:
        """Blob id stored at ``path`` in a tree, walking only the directories on the path."""
        parts = path.split('/')
        current = tree_oid
        for i, name in enumerate(parts):
            if current is None:
                return None
            entry = self.read_tree(current).get(name)
            if entry is None:
                return None
            if i == len(parts) - 1:
                return entry.hash if entry.type == 'blob' else None
            if entry.type != 'tree':
                return None
            current = entry.hash
        return None

    def diff_trees(self, old_tree: Optional[str], new_tree: Optional[str],
                   prefix: str = '') -> Dict[str, Tuple[Optional[str], Optional[str]]]:
        """
        Compare two trees, descending only into subtrees whose ids differ.

        Returns:
            Dict of {path: (old blob id, new blob id)} for every changed file;
            a side is None where the file is absent
        """
        changes: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        if old_tree == new_tree:
            return changes

        old_entries = {e.name: e for e in self.read_tree(old_tree).entries} if old_tree else {}
        new_entries = {e.name: e for e in self.read_tree(new_tree).entries} if new_tree else {}

        for name in sorted(set(old_entries) | set(new_entries)):
            old = old_entries.get(name)
            new = new_entries.get(name)
            if old is not None and new is not None and old.hash == new.hash and old.mode == new.mode:
                continue
            path = f"{prefix}{name}"

            old_sub = old.hash if old is not None and old.type == 'tree' else None
            new_sub = new.hash if new is not None and new.type == 'tree' else None
            if old_sub or new_sub:
                changes.update(self.diff_trees(old_sub, new_sub, f"{path}/"))

            old_blob = old.hash if old is not None and old.type == 'blob' else None
            new_blob = new.hash if new is not None and new.type == 'blob' else None
            if old_blob != new_blob:
                changes[path] = (old_blob, new_blob)
        return changes

    def diff_commits(self, old_commit: Optional[str], new_commit: str) -> Dict[str, DiffStat]:
        """
        Line statistics of every file changed between two commits.

        Args:
            old_commit: Old commit hash (None for a root commit)
            new_commit: New commit hash
        """
        changes = self.diff_trees(self.commit_tree(old_commit), self.commit_tree(new_commit))
        return {path: self.diff_blobs(old, new) for path, (old, new) in changes.items()}

