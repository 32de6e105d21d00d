"""Working tree / index / HEAD status."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from zengit.core.index import Index, iter_work_tree
from zengit.operations.diff import DiffEngine

logger = logging.getLogger(__name__)


@dataclass
class FileStatusEntry:
    """One row of status output. Unmodified paths are never reported."""
    path: str
    is_new: bool = False
    is_modified: bool = False
    is_deleted: bool = False
    is_ignored: bool = False


class StatusEngine:
    """
    Three-way comparison of HEAD (H), index (I) and working tree (W).

    - in W, not in H: new; also modified when staged content differs from W
    - in H or I, not in W: deleted
    - in W and H: modified when W differs from I (or H if unstaged), or
      when I differs from H

    A file stays "new" after staging until it is committed.
    """

    def __init__(self, repo):
        self.repo = repo
        self.diff = DiffEngine(repo)

    def head_files(self) -> Dict[str, str]:
        """Flattened HEAD tree; empty before the first commit."""
        return self.diff.tree_files(self.diff.commit_tree(self.repo.refs.resolve_head()))

    def index_files(self) -> Dict[str, str]:
        return Index.load(self.repo.index_file).snapshot()

    def compute(self, include_ignored: bool = False) -> List[FileStatusEntry]:
        head = self.head_files()
        index = self.index_files()
        work: Dict[str, str] = {}
        ignored: List[str] = []

        # Tracked files are reported even when an ignore pattern matches them
        for work_file in iter_work_tree(self.repo.work_tree, include_ignored=True):
            if work_file.ignored and work_file.path not in head and work_file.path not in index:
                if include_ignored:
                    ignored.append(work_file.path)
                continue
            work[work_file.path] = work_file.oid()

        rows: Dict[str, FileStatusEntry] = {}
        for path in set(head) | set(index) | set(work):
            row = self.classify(path, head.get(path), index.get(path), work.get(path))
            if row is not None:
                rows[path] = row
        for path in ignored:
            rows[path] = FileStatusEntry(path, is_ignored=True)

        result = [rows[path] for path in sorted(rows)]
        logger.debug("Status: %d changed paths", len(result))
        return result

    @staticmethod
    def classify(path: str, h: Optional[str], i: Optional[str],
                 w: Optional[str]) -> Optional[FileStatusEntry]:
        if w is not None and h is None:
            return FileStatusEntry(path, is_new=True, is_modified=i is not None and i != w)
        if w is None:
            return FileStatusEntry(path, is_deleted=True)
        base = i if i is not None else h
        if w != base or (i is not None and i != h):
            return FileStatusEntry(path, is_modified=True)
        return None

