"""Repository management and object storage for zengit."""

import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import CorruptObject, IntegrityMismatch, ObjectNotFound, RepositoryExists
from .hash import is_oid, object_header, object_id
from .lock import RepositoryLock
from .objects import GitObject, parse_object
from .pack import PackFile

logger = logging.getLogger(__name__)

GIT_DIR_NAME = '.git'
DEFAULT_BRANCH = 'main'


class Repository:
    """
    Represents a Git repository.

    A repository manages the .git directory structure and provides
    methods for reading and writing Git objects. Objects live as zlib
    compressed loose files under ``objects/<2-hex>/<38-hex>``; objects
    stored in packs under ``objects/pack`` are readable as well.
    """

    def __init__(self, path: str = '.'):
        """
        Initialize repository handle.

        Args:
            path: Path to repository root (defaults to current directory)
        """
        self.work_tree = Path(path).resolve()
        self.git_dir = self.work_tree / GIT_DIR_NAME
        self.objects_dir = self.git_dir / 'objects'
        self.pack_dir = self.objects_dir / 'pack'
        self.refs_dir = self.git_dir / 'refs'
        self.heads_dir = self.refs_dir / 'heads'
        self.tags_dir = self.refs_dir / 'tags'
        self.remotes_dir = self.refs_dir / 'remotes'
        self.head_file = self.git_dir / 'HEAD'
        self.index_file = self.git_dir / 'index'
        self.config_file = self.git_dir / 'config'
        self.packed_refs_file = self.git_dir / 'packed-refs'
        self.lock_file = self.git_dir / 'index.lock'

        self._ref_manager = None
        self._config = None
        self._remote_manager = None
        self._events = None
        self._packs: Optional[List[PackFile]] = None

    @property
    def refs(self):
        """Get RefManager instance."""
        if self._ref_manager is None:
            from .refs import RefManager
            self._ref_manager = RefManager(self)
        return self._ref_manager

    @property
    def config(self):
        """Get Config instance bound to this repository."""
        if self._config is None:
            from .config import Config
            self._config = Config(self.config_file)
        return self._config

    @property
    def remote(self):
        """Get RemoteManager instance."""
        if self._remote_manager is None:
            from zengit.remote.remote import RemoteManager
            self._remote_manager = RemoteManager(self)
        return self._remote_manager

    @property
    def events(self):
        """Get the EventHub that publishes changes to this repository."""
        if self._events is None:
            from .events import EventHub
            self._events = EventHub()
        return self._events

    def init(self, initial_branch: str = DEFAULT_BRANCH) -> 'Repository':
        """
        Initialize a new repository.

        Creates the .git directory structure:
        .git/
        ├── objects/       # Object database
        ├── refs/
        │   ├── heads/     # Branch references
        │   └── tags/      # Tag references
        ├── HEAD           # Current branch/commit
        └── config         # Repository configuration

        Returns:
            Repository: self for method chaining

        Raises:
            RepositoryExists: If repository already exists
        """
        if self.git_dir.exists():
            raise RepositoryExists(self.git_dir)

        self.work_tree.mkdir(parents=True, exist_ok=True)
        self.git_dir.mkdir()
        self.objects_dir.mkdir()
        self.pack_dir.mkdir()
        (self.objects_dir / 'info').mkdir()
        self.refs_dir.mkdir()
        self.heads_dir.mkdir()
        self.tags_dir.mkdir()
        (self.git_dir / 'info').mkdir()

        self.head_file.write_text(f'ref: refs/heads/{initial_branch}\n')
        self.config_file.write_text(
            '[core]\n'
            '\trepositoryformatversion = 0\n'
            '\tfilemode = true\n'
            '\tbare = false\n'
        )
        logger.info("Initialized empty repository in %s", self.git_dir)
        return self

    @classmethod
    def find_repository(cls, path: str = '.') -> Optional['Repository']:
        """
        Find repository by searching up the directory tree.

        Searches from the given path upwards until it finds a .git directory
        or reaches the filesystem root.

        Args:
            path: Starting path for search

        Returns:
            Repository if found, None otherwise
        """
        current = Path(path).resolve()

        while True:
            git_dir = current / GIT_DIR_NAME
            if git_dir.is_dir() and (git_dir / 'HEAD').exists():
                return cls(str(current))

            if current == current.parent:
                return None

            current = current.parent

    def is_valid(self) -> bool:
        """Check that the control directory has the required layout."""
        return self.head_file.is_file() and self.objects_dir.is_dir() and self.refs_dir.is_dir()

    def lock(self) -> RepositoryLock:
        """Return the advisory lock guarding mutating operations."""
        return RepositoryLock(self.lock_file)

    def object_path(self, oid: str) -> Path:
        """
        Get filesystem path for a loose object.

        Objects are stored in subdirectories named by the first 2 characters
        of the hash, with the remaining 38 characters as the filename.

        Args:
            oid: 40-character SHA-1 hash
        """
        return self.objects_dir / oid[:2] / oid[2:]

    def put(self, data: bytes, kind: str) -> str:
        """
        Store raw content as an object.

        Writing is idempotent: content that is already stored is not
        rewritten.

        Args:
            data: Object content (without header)
            kind: Object type

        Returns:
            str: Object id
        """
        oid = object_id(kind, data)
        if self.exists(oid):
            return oid

        path = self.object_path(oid)
        path.parent.mkdir(parents=True, exist_ok=True)
        compressed = zlib.compress(object_header(kind, len(data)) + data)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix='tmp_obj_')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(compressed)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Wrote %s %s (%d bytes)", kind, oid, len(data))
        return oid

    def get(self, oid: str) -> Tuple[str, bytes]:
        """
        Read an object's type and content.

        Args:
            oid: 40-character SHA-1 hash

        Returns:
            Tuple of (kind, data)

        Raises:
            ObjectNotFound: If no such object is stored
            CorruptObject: If the stored bytes cannot be decoded
        """
        if not is_oid(oid):
            raise ObjectNotFound(oid)

        path = self.object_path(oid)
        try:
            compressed = path.read_bytes()
        except FileNotFoundError:
            found = self._get_packed(oid)
            if found is None:
                raise ObjectNotFound(oid) from None
            return found

        try:
            content = zlib.decompress(compressed)
        except zlib.error as e:
            raise CorruptObject(f"Object {oid} failed to decompress: {e}") from e

        null_idx = content.find(b'\0')
        if null_idx == -1:
            raise CorruptObject(f"Object {oid} has no header")
        header = content[:null_idx].decode('ascii', 'replace')
        data = content[null_idx + 1:]

        try:
            kind, size_str = header.split(' ', 1)
            size = int(size_str)
        except ValueError:
            raise CorruptObject(f"Invalid object header: {header}") from None

        if len(data) != size:
            raise CorruptObject(
                f"Object {oid} size mismatch: expected {size}, got {len(data)}"
            )
        return kind, data

    def verify(self, oid: str) -> None:
        """
        Recompute an object's hash and compare it with its id.

        Raises:
            IntegrityMismatch: If the content hashes to a different id
        """
        kind, data = self.get(oid)
        actual = object_id(kind, data)
        if actual != oid:
            raise IntegrityMismatch(oid, actual)

    def exists(self, oid: str) -> bool:
        """Check if object exists in repository."""
        if not is_oid(oid):
            return False
        if self.object_path(oid).exists():
            return True
        return any(pack.contains(oid) for pack in self._load_packs())

    def write_object(self, obj: GitObject) -> str:
        """
        Write a typed object to the repository.

        Returns:
            str: SHA-1 hash of the object
        """
        return self.put(obj.serialize(), obj.type)

    def read_object(self, oid: str) -> GitObject:
        """
        Read and deserialize an object.

        Returns:
            GitObject: Blob, Tree, Commit or Tag
        """
        kind, data = self.get(oid)
        return parse_object(kind, data, oid)

    def _load_packs(self, refresh: bool = False) -> List[PackFile]:
        if self._packs is not None and not refresh:
            return self._packs
        if self._packs:
            for pack in self._packs:
                pack.close()
        packs = []
        if self.pack_dir.is_dir():
            for pack_path in sorted(self.pack_dir.glob('pack-*.pack')):
                if pack_path.with_suffix('.idx').exists():
                    packs.append(PackFile(pack_path, resolve_external=self.get))
        self._packs = packs
        return packs

    def _get_packed(self, oid: str) -> Optional[Tuple[str, bytes]]:
        for refresh in (False, True):
            for pack in self._load_packs(refresh=refresh):
                found = pack.get(oid)
                if found is not None:
                    return found
        return None

    def close(self) -> None:
        """Release open pack files."""
        if self._packs:
            for pack in self._packs:
                pack.close()
        self._packs = None

    def __repr__(self) -> str:
        return f"Repository(path={self.work_tree})"
