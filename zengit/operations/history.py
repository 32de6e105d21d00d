"""Commit graph traversal and per-file history mining."""

import heapq
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set

from zengit.core.errors import PathNotFound, RefNotFound
from zengit.core.index import iter_work_tree
from zengit.core.objects import Commit, Signature
from zengit.operations.diff import DiffEngine
from zengit.operations.tags import TagManager

logger = logging.getLogger(__name__)

UNTRACKED_MESSAGE = 'Untracked file'


@dataclass
class FileHistoryEntry:
    """A commit that changed a file, with the line counts of that change."""
    commit_oid: str
    author: Signature
    commit_time: int
    message: str
    added_lines: int
    deleted_lines: int


@dataclass
class FileMetadata:
    """
    The last commit that touched a file.

    Untracked files have no commit: ``last_commit_oid`` and ``last_author``
    are None and the message is "Untracked file".
    """
    path: str
    last_commit_oid: Optional[str]
    last_commit_message: str
    last_author: Optional[Signature]
    last_commit_time: int
    added_lines: int = 0
    deleted_lines: int = 0

    @classmethod
    def untracked(cls, path: str) -> 'FileMetadata':
        return cls(path, None, UNTRACKED_MESSAGE, None, 0)

    @classmethod
    def from_entry(cls, path: str, entry: FileHistoryEntry) -> 'FileMetadata':
        return cls(
            path=path,
            last_commit_oid=entry.commit_oid,
            last_commit_message=entry.message,
            last_author=entry.author,
            last_commit_time=entry.commit_time,
            added_lines=entry.added_lines,
            deleted_lines=entry.deleted_lines,
        )


def normalize_path(path: str) -> str:
    """Repository-relative '/' separated form of a user supplied path."""
    path = path.replace(os.sep, '/').strip('/')
    while path.startswith('./'):
        path = path[2:]
    return '' if path == '.' else path


def in_directory(path: str, directory: str) -> bool:
    return not directory or path == directory or path.startswith(directory + '/')


class HistoryWalker:
    """
    Walks the commit graph newest first.

    Order comes from a heap keyed on committer time, ties broken by
    ascending commit id. Every commit is emitted once. Merge commits are
    compared against their first parent only when mining file history.
    """

    def __init__(self, repo):
        self.repo = repo
        self.diff = DiffEngine(repo)

    def read_commit(self, oid: str) -> Commit:
        commit = self.repo.read_object(oid)
        if not isinstance(commit, Commit):
            raise RefNotFound(oid, f"is a {commit.type}, not a commit")
        return commit

    def walk(self, start_oid: Optional[str]) -> Iterator[Commit]:
        """
        Lazily yield commits reachable from ``start_oid``.

        Yields:
            Commit objects; ``commit.hash`` is the commit id
        """
        if start_oid is None:
            return
        first = self.read_commit(start_oid)
        heap = [(-first.commit_time, start_oid)]
        loaded: Dict[str, Commit] = {start_oid: first}
        seen: Set[str] = {start_oid}

        while heap:
            _, oid = heapq.heappop(heap)
            commit = loaded.pop(oid)
            yield commit
            for parent in commit.parents:
                if parent in seen:
                    continue
                seen.add(parent)
                parent_commit = self.read_commit(parent)
                loaded[parent] = parent_commit
                heapq.heappush(heap, (-parent_commit.commit_time, parent))

    def first_parent_tree(self, commit: Commit) -> Optional[str]:
        if not commit.parents:
            return None
        return self.read_commit(commit.parents[0]).tree

    def file_history(self, path: str, start_oid: Optional[str] = None) -> Iterator[FileHistoryEntry]:
        """
        Commits whose version of ``path`` differs from their first parent's.

        Args:
            path: File path relative to the repository root
            start_oid: Commit to start from (default: HEAD)

        Yields:
            FileHistoryEntry, most recent first
        """
        path = normalize_path(path)
        if start_oid is None:
            start_oid = self.repo.refs.resolve_head()

        for commit in self.walk(start_oid):
            current = self.diff.lookup_path(commit.tree, path)
            previous = self.diff.lookup_path(self.first_parent_tree(commit), path)
            if current == previous:
                continue
            stat = self.diff.diff_blobs(previous, current)
            yield FileHistoryEntry(
                commit_oid=commit.hash,
                author=commit.author,
                commit_time=commit.commit_time,
                message=commit.message,
                added_lines=stat.added,
                deleted_lines=stat.deleted,
            )

    def head_files(self) -> Dict[str, str]:
        head = self.repo.refs.resolve_head()
        if head is None:
            return {}
        return self.diff.tree_files(self.read_commit(head).tree)

    def file_metadata(self, path: str) -> FileMetadata:
        """
        Last commit that touched ``path``.

        Raises:
            PathNotFound: If the path is neither in HEAD nor in the working tree
        """
        path = normalize_path(path)
        if path in self.head_files():
            for entry in self.file_history(path):
                return FileMetadata.from_entry(path, entry)
        if os.path.lexists(self.repo.work_tree / path) and not (self.repo.work_tree / path).is_dir():
            return FileMetadata.untracked(path)
        raise PathNotFound(path)

    def files_with_metadata(self, directory: Optional[str] = None) -> List[FileMetadata]:
        """
        Metadata for every working-tree and HEAD file under ``directory``.

        All tracked paths are resolved in one history walk: each commit is
        diffed against its first parent and claims the pending paths it
        changed. The walk stops once nothing is pending.
        """
        directory = normalize_path(directory or '')
        head = {p: oid for p, oid in self.head_files().items() if in_directory(p, directory)}
        work = [
            wf.path for wf in iter_work_tree(self.repo.work_tree)
            if in_directory(wf.path, directory)
        ]

        result: Dict[str, FileMetadata] = {}
        pending = set(head)
        for commit in self.walk(self.repo.refs.resolve_head()):
            if not pending:
                break
            changes = self.diff.diff_trees(self.first_parent_tree(commit), commit.tree)
            for path in pending & set(changes):
                old, new = changes[path]
                stat = self.diff.diff_blobs(old, new)
                result[path] = FileMetadata(
                    path=path,
                    last_commit_oid=commit.hash,
                    last_commit_message=commit.message,
                    last_author=commit.author,
                    last_commit_time=commit.commit_time,
                    added_lines=stat.added,
                    deleted_lines=stat.deleted,
                )
            pending -= set(changes)

        for path in work:
            if path not in result:
                result[path] = FileMetadata.untracked(path)
        logger.debug("Resolved metadata for %d files", len(result))
        return [result[path] for path in sorted(result)]


def resolve_commit(repo, rev: str) -> Optional[str]:
    """
    Resolve a revision to a commit id, handling HEAD~N and HEAD^ syntax.

    Args:
        repo: Repository instance
        rev: HEAD, HEAD~N, HEAD^^, branch, tag or (abbreviated) commit id

    Returns:
        Commit id or None if not found
    """
    steps = 0
    base = rev
    if '~' in rev:
        base, _, count = rev.partition('~')
        try:
            steps = int(count) if count else 1
        except ValueError:
            return None
    elif rev.endswith('^'):
        base = rev.rstrip('^')
        steps = len(rev) - len(base)

    oid = repo.refs.resolve_reference(base or 'HEAD')
    if oid is None:
        return None

    oid, _ = TagManager(repo).peel(oid)

    walker = HistoryWalker(repo)
    for _ in range(steps):
        commit = walker.read_commit(oid)
        if not commit.parents:
            return None
        oid = commit.parents[0]
    return oid
