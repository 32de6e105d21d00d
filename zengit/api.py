"""Repository facade.

``GitRepo`` is an explicit handle on one repository; any number may be
open at once. Mutating calls take the repository lock and publish change
events to subscribers once they complete.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional

from zengit.core.errors import NotARepository, RefNotFound
from zengit.core.events import (
    BranchChanged,
    Callback,
    HeadMoved,
    IndexChanged,
    RefsChanged,
    Subscription,
    WatchError,
)
from zengit.core.index import Index
from zengit.core.objects import Commit
from zengit.core.refs import HEADS_PREFIX, TAGS_PREFIX
from zengit.core.repository import DEFAULT_BRANCH, Repository
from zengit.operations.checkout import CheckoutEngine
from zengit.operations.commit import CommitEngine
from zengit.operations.history import (
    FileHistoryEntry,
    FileMetadata,
    HistoryWalker,
    resolve_commit,
)
from zengit.operations.status import FileStatusEntry, StatusEngine
from zengit.operations.tags import TagInfo, TagManager
from zengit.remote import clone as clone_module
from zengit.remote import push as push_module
from zengit.remote.push import PushResult
from zengit.remote.transport import CancelToken

logger = logging.getLogger(__name__)


class GitRepo:
    """
    Handle on a repository and its working tree.

    Args:
        path: The work tree or any directory below it

    Raises:
        NotARepository: If no repository is found at or above ``path``
    """

    def __init__(self, path: str = '.'):
        repo = Repository.find_repository(path)
        if repo is None:
            raise NotARepository(Path(path).resolve())
        self.repo = repo
        self._last_branch = self.repo.refs.get_current_branch()
        self._last_head = self.repo.refs.resolve_head()

    @property
    def path(self) -> Path:
        return self.repo.work_tree

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> 'GitRepo':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"GitRepo({str(self.path)!r})"

    # -- events -------------------------------------------------------------

    def subscribe(self, callback: Callback) -> Subscription:
        """Receive ``Ok(event)`` / ``Err(WatchError)`` results for this repository."""
        return self.repo.events.subscribe(callback)

    def _publish_head_changes(self) -> None:
        branch = self.repo.refs.get_current_branch()
        head = self.repo.refs.resolve_head()
        if branch != self._last_branch:
            self.repo.events.emit(BranchChanged(self._last_branch, branch))
        if head != self._last_head:
            self.repo.events.emit(HeadMoved(self._last_head, head))
        self._last_branch = branch
        self._last_head = head

    def _publish_refs(self, *refs: str) -> None:
        self.repo.events.emit(RefsChanged(tuple(refs)))

    def notify_path_changed(self, path: str) -> None:
        """
        Entry point for a working-tree watcher.

        Publishes ``WorkTreeChanged`` and, when HEAD was changed from
        outside (e.g. by another tool), ``BranchChanged``/``HeadMoved``.
        """
        self.repo.events.path_changed(path)
        self._publish_head_changes()

    def notify_watch_error(self, error) -> None:
        if not isinstance(error, WatchError):
            error = WatchError(str(error))
        logger.warning("Working tree watcher failed: %s", error.message)
        self.repo.events.fail(error)

    # -- staging and commits ------------------------------------------------

    def add_all(self) -> dict:
        """
        Stage every change in the working tree.

        Returns:
            Dict with 'added', 'modified' and 'removed' path lists
        """
        with self.repo.lock():
            index = Index.load(self.repo.index_file)
            changes = index.add_all(self.repo)
            index.write(self.repo.index_file)
        self.repo.events.emit(IndexChanged())
        return changes

    def commit(self, message: str, author_name: str, author_email: str) -> str:
        """
        Commit the index on the current branch.

        Returns:
            str: The new commit id

        Raises:
            NothingToCommit: If the index is empty and there are no commits
            LockContention: If another mutation is in progress
        """
        with self.repo.lock():
            oid = CommitEngine(self.repo).commit(message, author_name, author_email)
        branch = self.repo.refs.get_current_branch()
        self._publish_refs(f'{HEADS_PREFIX}{branch}' if branch else 'HEAD')
        self._publish_head_changes()
        return oid

    def get_file_status(self, include_ignored: bool = False) -> List[FileStatusEntry]:
        return StatusEngine(self.repo).compute(include_ignored=include_ignored)

    # -- branches -----------------------------------------------------------

    def get_current_branch(self) -> Optional[str]:
        """Current branch name, or None when HEAD is detached."""
        return self.repo.refs.get_current_branch()

    def get_head_commit_hash(self) -> Optional[str]:
        """HEAD's commit id, or None before the first commit."""
        return self.repo.refs.resolve_head()

    def list_branches(self) -> List[str]:
        return [name for name, _ in self.repo.refs.list_branches()]

    def create_branch(self, name: str, start: Optional[str] = None) -> str:
        """
        Create a branch at ``start`` (default: HEAD) without switching to it.

        Returns:
            str: The commit the branch points at

        Raises:
            RefNotFound: If ``start`` (or HEAD) does not resolve to a commit
            RefAlreadyExists: If the branch exists
            InvalidRefName: If the name is not a valid ref name
        """
        oid = resolve_commit(self.repo, start or 'HEAD')
        if oid is None:
            raise RefNotFound(start or 'HEAD', None if start else "no commits yet")
        with self.repo.lock():
            self.repo.refs.create_branch(name, oid)
        self._publish_refs(f'{HEADS_PREFIX}{name}')
        return oid

    def delete_branch(self, name: str) -> None:
        with self.repo.lock():
            self.repo.refs.delete_branch(name)
        self._publish_refs(f'{HEADS_PREFIX}{name}')

    def _checkout(self, oid: str, force: bool) -> dict:
        refuse = self.repo.config.refuse_dirty_checkout
        return CheckoutEngine(self.repo).checkout(oid, force=force or not refuse)

    def checkout_branch(self, name: str, force: bool = False) -> dict:
        """
        Switch the working tree, index and HEAD to a branch.

        Args:
            name: Branch name
            force: Discard local changes instead of refusing

        Returns:
            Dict with counts of 'written', 'removed' and 'unchanged' files

        Raises:
            InvalidRefName: If the name is not a valid ref name
            RefNotFound: If the branch doesn't exist
            DirtyWorkingTree: If local changes would be lost (unless forced
                or ``zengit.refuseDirtyCheckout`` is false)
        """
        ref_name = self.repo.refs.branch_ref(name)
        oid = self.repo.refs.resolve(ref_name)
        if oid is None:
            raise RefNotFound(ref_name)
        with self.repo.lock():
            counts = self._checkout(oid, force)
            self.repo.refs.set_head(name)
        logger.info("Switched to branch %s", name)
        self.repo.events.emit(IndexChanged())
        self._publish_head_changes()
        return counts

    def checkout_commit(self, rev: str, force: bool = False) -> dict:
        """Check out a commit with a detached HEAD."""
        oid = resolve_commit(self.repo, rev)
        if oid is None:
            raise RefNotFound(rev)
        with self.repo.lock():
            counts = self._checkout(oid, force)
            self.repo.refs.set_head(oid, symbolic=False)
        logger.info("HEAD is now detached at %s", oid[:7])
        self.repo.events.emit(IndexChanged())
        self._publish_head_changes()
        return counts

    def checkout_tag(self, name: str, force: bool = False) -> dict:
        return self.checkout_commit(TagManager(self.repo).resolve_tag(name), force=force)

    # -- tags ---------------------------------------------------------------

    def list_tags(self) -> List[TagInfo]:
        return TagManager(self.repo).list_tags()

    def create_tag(self, name: str, message: Optional[str] = None,
                   target: Optional[str] = None) -> str:
        """
        Create a tag; annotated when ``message`` is non-empty.

        Returns:
            Tag object id (annotated) or commit id (lightweight)
        """
        if target is not None:
            resolved = resolve_commit(self.repo, target)
            if resolved is None:
                raise RefNotFound(target)
            target = resolved
        with self.repo.lock():
            oid = TagManager(self.repo).create_tag(name, message=message, target=target)
        self._publish_refs(f'{TAGS_PREFIX}{name}')
        return oid

    def delete_tag(self, name: str) -> None:
        with self.repo.lock():
            TagManager(self.repo).delete_tag(name)
        self._publish_refs(f'{TAGS_PREFIX}{name}')

    # -- history ------------------------------------------------------------

    def walk_history(self, start: Optional[str] = None) -> Iterator[Commit]:
        """
        Lazily walk commits reachable from ``start`` (default: HEAD).

        Raises:
            RefNotFound: If ``start`` is given and does not resolve
        """
        if start is None:
            oid = self.repo.refs.resolve_head()
        else:
            oid = resolve_commit(self.repo, start)
            if oid is None:
                raise RefNotFound(start)
        return HistoryWalker(self.repo).walk(oid)

    def get_file_history(self, path: str) -> List[FileHistoryEntry]:
        return list(HistoryWalker(self.repo).file_history(path))

    def get_file_metadata(self, path: str) -> FileMetadata:
        return HistoryWalker(self.repo).file_metadata(path)

    def list_files_with_metadata(self, directory: Optional[str] = None) -> List[FileMetadata]:
        return HistoryWalker(self.repo).files_with_metadata(directory)

    # -- remotes ------------------------------------------------------------

    def get_remote_url(self, name: str = 'origin') -> Optional[str]:
        return self.repo.remote.get_remote_url(name)

    def push(self, remote_name: str = 'origin', branch_name: Optional[str] = None,
             force: bool = False) -> PushResult:
        """
        Push a branch (default: the current one) to a remote on this filesystem.

        Raises:
            RefNotFound: If the remote or branch doesn't exist
            NetworkError: If the remote is not a local path or file:// URL
            NonFastForward: If the remote branch has commits the local one lacks
        """
        with self.repo.lock():
            result = push_module.push(self.repo, remote_name, branch_name, force=force)
        self._publish_refs(result.tracking_ref)
        return result


def init_repository(path: str = '.', initial_branch: str = DEFAULT_BRANCH) -> GitRepo:
    """
    Create an empty repository.

    Raises:
        RepositoryExists: If ``path`` already holds a repository
    """
    Repository(path).init(initial_branch)
    return GitRepo(path)


def clone_repository(url: str, dest: str, cancel_token: Optional[CancelToken] = None,
                     session=None) -> GitRepo:
    """Clone ``url`` into ``dest``; see ``zengit.remote.clone``."""
    repo = clone_module.clone_repository(url, dest, cancel_token=cancel_token, session=session)
    return GitRepo(str(repo.work_tree))


def find_repository(start_path: str = '.') -> Optional[GitRepo]:
    """Open the repository containing ``start_path``, or None."""
    repo = Repository.find_repository(start_path)
    if repo is None:
        return None
    return GitRepo(str(repo.work_tree))


def is_git_repository(path: str) -> bool:
    return Repository.find_repository(path) is not None


def get_branch_name(path: str) -> Optional[str]:
    """
    Current branch of the repository containing ``path``.

    Raises:
        NotARepository: If ``path`` is not inside a repository
    """
    return GitRepo(path).get_current_branch()
