"""Local transport: clone from and push to a repository on this filesystem."""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from zengit.core.errors import NotARepository
from zengit.core.refs import HEADS_PREFIX, TAGS_PREFIX
from zengit.core.repository import Repository
from zengit.remote.transport import CancelToken, RefAdvertisement, Transport, check_cancelled

logger = logging.getLogger(__name__)


def open_local(path) -> Repository:
    """
    Open the repository at ``path``.

    Raises:
        NotARepository: If ``path`` holds no repository
    """
    path = Path(path)
    repo = Repository(str(path))
    if not path.is_dir() or not repo.is_valid():
        raise NotARepository(path)
    return repo


def copy_objects(source: Repository, dest: Repository,
                 cancel_token: Optional[CancelToken] = None) -> int:
    """
    Copy the loose objects and packs ``dest`` lacks from ``source``.

    Files are copied as they are; nothing is recompressed.

    Returns:
        Number of files copied
    """
    copied = 0
    for obj_dir in sorted(source.objects_dir.iterdir()):
        check_cancelled(cancel_token)
        if obj_dir.is_dir() and len(obj_dir.name) == 2:
            dest_obj_dir = dest.objects_dir / obj_dir.name
            dest_obj_dir.mkdir(exist_ok=True)
            for obj_file in obj_dir.iterdir():
                dest_file = dest_obj_dir / obj_file.name
                if len(obj_file.name) == 38 and not dest_file.exists():
                    shutil.copy2(obj_file, dest_file)
                    copied += 1

    if source.pack_dir.is_dir():
        dest.pack_dir.mkdir(parents=True, exist_ok=True)
        for pack_file in sorted(source.pack_dir.iterdir()):
            check_cancelled(cancel_token)
            dest_file = dest.pack_dir / pack_file.name
            if pack_file.suffix in ('.pack', '.idx') and not dest_file.exists():
                shutil.copy2(pack_file, dest_file)
                copied += 1
    return copied


class LocalTransport(Transport):
    """Reads refs from a local repository and copies its object database."""

    def __init__(self, path: str, url: Optional[str] = None,
                 cancel_token: Optional[CancelToken] = None):
        super().__init__(url or path, cancel_token)
        self.source_path = Path(path).expanduser().resolve()
        self._source: Optional[Repository] = None

    @property
    def source(self) -> Repository:
        if self._source is None:
            self._source = open_local(self.source_path)
        return self._source

    def discover_refs(self) -> RefAdvertisement:
        refs = self.source.refs
        adv = RefAdvertisement()
        for name, oid in refs.list_refs(HEADS_PREFIX) + refs.list_refs(TAGS_PREFIX):
            adv.refs[name] = oid
        adv.head = refs.resolve_head()
        adv.head_target = refs.head_target()
        logger.debug("Local remote %s has %d refs", self.source_path, len(adv.refs))
        return adv

    def fetch(self, repo, wants: List[str]) -> int:
        """Copy every object of the source; ``wants`` are all reachable from it."""
        copied = copy_objects(self.source, repo, self.cancel_token)
        logger.info("Copied %d object files from %s", copied, self.source_path)
        return copied

    def close(self) -> None:
        if self._source is not None:
            self._source.close()
