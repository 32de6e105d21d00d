"""Push a branch to a repository on this filesystem.

Objects the target lacks are copied first, then the target branch is
moved under the target's own lock. Only fast-forward updates are made
unless forced. A non-bare target keeps its working tree as it was even
when the pushed branch is checked out there.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from zengit.core.errors import NetworkError, NonFastForward, RefNotFound
from zengit.core.refs import REMOTES_PREFIX
from zengit.core.repository import Repository
from zengit.operations.history import HistoryWalker
from zengit.remote.local import copy_objects, open_local
from zengit.remote.transport import parse_url

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome of pushing one branch."""
    remote: str
    branch: str
    old_oid: Optional[str]
    new_oid: str
    objects_copied: int = 0

    @property
    def up_to_date(self) -> bool:
        return self.old_oid == self.new_oid

    @property
    def tracking_ref(self) -> str:
        return f'{REMOTES_PREFIX}{self.remote}/{self.branch}'


def is_ancestor(repo: Repository, ancestor: str, descendant: str) -> bool:
    """True if ``ancestor`` is reachable from ``descendant`` in ``repo``."""
    if not repo.exists(ancestor):
        return False
    return any(commit.hash == ancestor for commit in HistoryWalker(repo).walk(descendant))


def _target_path(repo: Repository, url: str) -> Path:
    protocol, path = parse_url(url)
    if protocol in ('http', 'https'):
        raise NetworkError(f"Pushing over {protocol} is not supported: {url}")
    if protocol != 'file':
        raise NetworkError(
            f"Protocol '{protocol}' is not supported; use a local path or an http(s) URL"
        )
    target = Path(path).expanduser()
    if not target.is_absolute():
        target = repo.work_tree / target
    return target.resolve()


def push(repo: Repository, remote_name: str = 'origin', branch_name: Optional[str] = None,
         force: bool = False) -> PushResult:
    """
    Push a local branch to the branch of the same name on a remote.

    Args:
        repo: Repository to push from
        remote_name: Configured remote to push to
        branch_name: Branch to push (default: the current branch)
        force: Move the remote branch even when commits would be dropped

    Returns:
        PushResult: Old and new remote tips

    Raises:
        RefNotFound: If the remote is not configured, HEAD is detached or
            the branch doesn't exist
        InvalidRefName: If the branch name is not a valid ref name
        NetworkError: If the remote is not on this filesystem
        NotARepository: If the remote path holds no repository
        NonFastForward: If the remote branch has commits the local one lacks
        LockContention: If the remote is locked by another operation
    """
    url = repo.remote.get_remote_url(remote_name)
    if not url:
        raise RefNotFound(remote_name, "no such remote")

    if branch_name is None:
        branch_name = repo.refs.get_current_branch()
        if branch_name is None:
            raise RefNotFound('HEAD', "detached; name the branch to push")
    ref_name = repo.refs.branch_ref(branch_name)
    local_oid = repo.refs.resolve(ref_name)
    if local_oid is None:
        raise RefNotFound(ref_name)

    target = open_local(_target_path(repo, url))
    try:
        with target.lock():
            old_oid = target.refs.resolve(ref_name)
            result = PushResult(remote_name, branch_name, old_oid, local_oid)
            if result.up_to_date:
                logger.info("%s is up to date on %s", branch_name, remote_name)
            else:
                if old_oid is not None and not force and not is_ancestor(repo, old_oid, local_oid):
                    raise NonFastForward(ref_name, old_oid, local_oid)
                result.objects_copied = copy_objects(repo, target)
                target.refs.write_ref(ref_name, local_oid)
                logger.info("Pushed %s to %s: %s -> %s", branch_name, remote_name,
                            old_oid[:7] if old_oid else '(new)', local_oid[:7])
    finally:
        target.close()

    repo.refs.write_ref(result.tracking_ref, local_oid)
    return result
