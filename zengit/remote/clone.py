"""Clone a remote repository into a new directory.

The clone is assembled in a temporary sibling of the destination and
renamed into place only once objects, refs and the working tree are
complete. A failure or cancellation leaves no destination behind.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from zengit.core.errors import RepositoryExists
from zengit.core.refs import HEADS_PREFIX, REMOTES_PREFIX, TAGS_PREFIX
from zengit.core.repository import DEFAULT_BRANCH, Repository
from zengit.operations.checkout import CheckoutEngine
from zengit.remote.transport import (
    CancelToken, RefAdvertisement, Transport, check_cancelled, parse_url,
)

logger = logging.getLogger(__name__)

REMOTE_NAME = 'origin'


def _prepare_destination(dest: Path) -> None:
    if dest.exists():
        if not dest.is_dir() or any(dest.iterdir()):
            raise RepositoryExists(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)


def write_remote_refs(repo: Repository, adv: RefAdvertisement, remote_name: str = REMOTE_NAME) -> None:
    """Record remote branches as remote-tracking refs and copy tags."""
    refs = repo.refs
    for branch, oid in sorted(adv.branches.items()):
        refs.write_ref(f'{REMOTES_PREFIX}{remote_name}/{branch}', oid)
    for tag, oid in sorted(adv.tags.items()):
        refs.write_ref(f'{TAGS_PREFIX}{tag}', oid)

    default = adv.default_branch()
    if default is not None:
        (repo.remotes_dir / remote_name).mkdir(parents=True, exist_ok=True)
        (repo.remotes_dir / remote_name / 'HEAD').write_text(
            f'ref: {REMOTES_PREFIX}{remote_name}/{default}\n'
        )


def populate(repo: Repository, transport: Transport, url: str,
             cancel_token: Optional[CancelToken] = None) -> Optional[str]:
    """
    Fetch everything the remote offers into a freshly initialized repo.

    Returns:
        The checked out branch name, or None for an empty remote
    """
    adv = transport.discover_refs()
    check_cancelled(cancel_token)

    wants = adv.wants()
    received = transport.fetch(repo, wants)
    logger.debug("Fetched %d objects for %d refs", received, len(wants))
    check_cancelled(cancel_token)

    write_remote_refs(repo, adv)
    repo.remote.add_remote(REMOTE_NAME, url)

    branch = adv.default_branch()
    if branch is None:
        # Empty remote: HEAD stays unborn on the branch the remote names
        target = adv.head_target if adv.head_target and adv.head_target.startswith(HEADS_PREFIX) \
            else f'{HEADS_PREFIX}{DEFAULT_BRANCH}'
        repo.refs.set_head(target)
        return None

    oid = adv.branches[branch]
    repo.refs.write_ref(f'{HEADS_PREFIX}{branch}', oid)
    repo.refs.set_head(branch)
    section = f'branch "{branch}"'
    repo.config.set(section, 'remote', REMOTE_NAME)
    repo.config.set(section, 'merge', f'{HEADS_PREFIX}{branch}')

    check_cancelled(cancel_token)
    CheckoutEngine(repo).checkout(oid, force=True)
    return branch


def clone_repository(url: str, dest_path: str, cancel_token: Optional[CancelToken] = None,
                     transport: Optional[Transport] = None, session=None) -> Repository:
    """
    Clone ``url`` into ``dest_path``.

    Args:
        url: Local path, file:// URL or http(s) URL
        dest_path: Directory to create; may exist only if empty
        cancel_token: Stops the clone with OperationCancelled when cancelled
        transport: Transport to use instead of the one the URL selects
        session: requests.Session for HTTP remotes

    Returns:
        Repository: The cloned repository

    Raises:
        RepositoryExists: If the destination is a non-empty directory or a file
        NetworkError, ProtocolError: If the transfer fails
        OperationCancelled: If cancelled before the clone is in place
    """
    protocol, path = parse_url(url)
    if protocol == 'file' and not url.startswith('file://'):
        # Recorded absolute so the remote still resolves from inside the clone
        url = str(Path(path).expanduser().resolve())
    dest = Path(dest_path).expanduser().resolve()
    _prepare_destination(dest)

    tmp = Path(tempfile.mkdtemp(prefix=f'.{dest.name}.clone-', dir=dest.parent))
    repo = Repository(str(tmp))
    owns_transport = transport is None
    try:
        repo.init()
        if transport is None:
            transport = repo.remote.open_transport(url, cancel_token, session=session)
        branch = populate(repo, transport, url, cancel_token)
        repo.close()
        check_cancelled(cancel_token)

        if dest.exists():
            dest.rmdir()
        os.replace(tmp, dest)
    except BaseException:
        repo.close()
        shutil.rmtree(tmp, ignore_errors=True)
        raise
    finally:
        if owns_transport and transport is not None:
            transport.close()

    logger.info("Cloned %s into %s (branch %s)", url, dest, branch or 'unborn')
    return Repository(str(dest))
