"""Commit engine: trees from the index, commits onto HEAD."""

import logging
from collections import defaultdict
from typing import Dict, Optional

from zengit.core.errors import NothingToCommit
from zengit.core.index import Index, tree_mode
from zengit.core.objects import MODE_TREE, Commit, Signature, Tree

logger = logging.getLogger(__name__)


def build_tree_from_index(repo, index: Index) -> str:
    """
    Build tree objects from index entries, bottom-up.

    Unchanged directories serialize to the same bytes and so reuse their
    existing tree ids.

    Returns:
        str: Root tree id
    """
    trees: Dict[str, Tree] = defaultdict(Tree)
    trees['']

    for entry in index.sorted_entries():
        parts = entry.path.split('/')
        for i in range(1, len(parts)):
            trees['/'.join(parts[:i])]
        dir_path = '/'.join(parts[:-1])
        trees[dir_path].add_entry(tree_mode(entry.mode), 'blob', entry.sha1, parts[-1])

    for dir_path in sorted(trees, key=lambda d: d.count('/'), reverse=True):
        if not dir_path:
            continue
        tree_hash = repo.write_object(trees[dir_path])
        parent_path, _, dir_name = dir_path.rpartition('/')
        trees[parent_path].add_entry(MODE_TREE, 'tree', tree_hash, dir_name)

    return repo.write_object(trees[''])


class CommitEngine:
    """Creates commits from the current index."""

    def __init__(self, repo):
        self.repo = repo

    def commit(self, message: str, author_name: str, author_email: str,
               committer: Optional[Signature] = None) -> str:
        """
        Record the index as a new commit on HEAD.

        Args:
            message: Commit message
            author_name: Author name
            author_email: Author email
            committer: Committer signature, defaults to the author

        Returns:
            str: The new commit id

        Raises:
            NothingToCommit: If the index is empty and there is no prior commit
        """
        index = Index.load(self.repo.index_file)
        parent = self.repo.refs.resolve_head()
        if not len(index) and parent is None:
            raise NothingToCommit("Nothing to commit (staging area is empty)")

        tree_hash = build_tree_from_index(self.repo, index)
        author = Signature.now(author_name, author_email)
        commit = Commit.create(
            tree_hash=tree_hash,
            parent_hashes=[parent] if parent else [],
            author=author,
            committer=committer or author,
            message=message,
        )
        commit_hash = self.repo.write_object(commit)
        self.repo.refs.update_head(commit_hash)

        logger.info(
            "Created commit %s on %s (%d files)",
            commit_hash[:7], self.repo.refs.get_current_branch() or 'detached HEAD', len(index)
        )
        return commit_hash
