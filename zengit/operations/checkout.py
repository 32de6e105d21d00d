"""Checkout: rewrite the working tree and index to match a commit."""

import logging
import os
import shutil
import stat as stat_module
from pathlib import Path
from typing import Dict, List, Set, Tuple

from zengit.core.errors import DirtyWorkingTree
from zengit.core.hash import hash_file
from zengit.core.index import Index, iter_work_tree
from zengit.core.objects import MODE_EXECUTABLE, MODE_SYMLINK
from zengit.operations.diff import DiffEngine
from zengit.operations.status import StatusEngine

logger = logging.getLogger(__name__)


class CheckoutEngine:
    """
    Moves the working tree, index and HEAD to another commit.

    Tracked files absent from the target are removed, files of the target
    are written, and the index is rebuilt from the target tree.
    """

    def __init__(self, repo):
        self.repo = repo
        self.diff = DiffEngine(repo)

    def dirty_paths(self, target_files: Dict[str, Tuple[str, str]]) -> List[str]:
        """
        Paths whose local state a checkout of ``target_files`` would lose.

        These are tracked files with staged or unstaged changes, staged new
        files, and untracked files the target would overwrite with
        different content.
        """
        status = StatusEngine(self.repo)
        index = status.index_files()
        untracked = {}
        dirty = []
        for row in status.compute():
            if row.is_modified or row.is_deleted or (row.is_new and row.path in index):
                dirty.append(row.path)
            elif row.is_new and row.path in target_files:
                untracked[row.path] = target_files[row.path][1]

        if untracked:
            for work_file in iter_work_tree(self.repo.work_tree):
                if work_file.path in untracked and work_file.oid() != untracked[work_file.path]:
                    dirty.append(work_file.path)
        return sorted(dirty)

    def blocked_paths(self, target_files: Dict[str, Tuple[str, str]], removed: Set[str]) -> List[str]:
        """
        Untracked paths standing where the target needs a directory or a file.

        A file or symlink at a parent of a target path blocks unless the
        checkout removes it. A directory at a target file path blocks while
        it holds anything the checkout does not remove.
        """
        work_tree = self.repo.work_tree
        blocked = set()
        for path in target_files:
            parts = path.split('/')
            for depth in range(1, len(parts)):
                parent = '/'.join(parts[:depth])
                parent_path = work_tree / parent
                if parent in removed or not os.path.lexists(parent_path):
                    continue
                if parent_path.is_symlink() or not parent_path.is_dir():
                    blocked.add(parent)
                    break

            file_path = work_tree / path
            if file_path.is_dir() and not file_path.is_symlink():
                for root, dirs, names in os.walk(file_path):
                    names += [d for d in dirs if os.path.islink(os.path.join(root, d))]
                    for name in names:
                        if (Path(root) / name).relative_to(work_tree).as_posix() not in removed:
                            blocked.add(path)
        return sorted(blocked)

    def checkout(self, commit_hash: str, force: bool = False) -> Dict[str, int]:
        """
        Make the working tree and index match a commit. HEAD is not touched.

        Args:
            commit_hash: Target commit
            force: Overwrite local changes instead of refusing

        Returns:
            Dict with counts of 'written', 'removed' and 'unchanged' files

        Raises:
            DirtyWorkingTree: If local changes would be lost and not forced
        """
        target_files = self.diff.flatten_tree(self.diff.commit_tree(commit_hash))

        index = Index.load(self.repo.index_file)
        head_files = self.diff.tree_files(self.diff.commit_tree(self.repo.refs.resolve_head()))
        removed = (set(head_files) | set(index.entries)) - set(target_files)

        # Nothing on disk changes until every check has passed
        if not force:
            dirty = set(self.dirty_paths(target_files))
            dirty.update(self.blocked_paths(target_files, removed))
            if dirty:
                raise DirtyWorkingTree(dirty)

        counts = {'written': 0, 'removed': 0, 'unchanged': 0}
        work_tree = self.repo.work_tree

        for path in sorted(removed):
            file_path = work_tree / path
            if file_path.is_symlink() or file_path.is_file():
                file_path.unlink()
                counts['removed'] += 1
                self._prune_empty_dirs(file_path.parent)

        new_index = Index()
        for path in sorted(target_files):
            mode, oid = target_files[path]
            file_path = work_tree / path
            self._clear_parents(file_path)
            if self._matches(file_path, mode, oid):
                counts['unchanged'] += 1
            else:
                self._write_file(file_path, mode, oid)
                counts['written'] += 1
            new_index.stage(path, oid, file_path.lstat())

        new_index.write(self.repo.index_file)
        logger.debug("Checked out %s: %s", commit_hash[:7], counts)
        return counts

    def _matches(self, file_path: Path, mode: str, oid: str) -> bool:
        if not os.path.lexists(file_path) or file_path.is_dir() and not file_path.is_symlink():
            return False
        st = file_path.lstat()
        if mode == MODE_SYMLINK:
            if not stat_module.S_ISLNK(st.st_mode):
                return False
            return self.repo.get(oid)[1] == os.fsencode(os.readlink(file_path))
        if not stat_module.S_ISREG(st.st_mode):
            return False
        if bool(st.st_mode & 0o111) != (mode == MODE_EXECUTABLE):
            return False
        return hash_file(file_path) == oid

    def _clear_parents(self, file_path: Path) -> None:
        """Remove files and symlinks standing where ``file_path`` needs directories."""
        relative = file_path.relative_to(self.repo.work_tree)
        for parent in reversed(list(relative.parents)[:-1]):
            parent_path = self.repo.work_tree / parent
            if parent_path.is_symlink() or parent_path.is_file():
                parent_path.unlink()
                return

    def _write_file(self, file_path: Path, mode: str, oid: str) -> None:
        _, data = self.repo.get(oid)

        if file_path.is_dir() and not file_path.is_symlink():
            shutil.rmtree(file_path)
        elif os.path.lexists(file_path):
            file_path.unlink()
        file_path.parent.mkdir(parents=True, exist_ok=True)

        if mode == MODE_SYMLINK:
            os.symlink(os.fsdecode(data), file_path)
            return

        with open(file_path, 'wb') as f:
            f.write(data)
        if mode == MODE_EXECUTABLE:
            st_mode = file_path.stat().st_mode
            # Grant execute wherever read is granted
            file_path.chmod(st_mode | ((st_mode & 0o444) >> 2))

    def _prune_empty_dirs(self, directory: Path) -> None:
        work_tree = self.repo.work_tree
        while directory != work_tree and work_tree in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent
