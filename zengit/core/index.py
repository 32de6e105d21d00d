"""Index (staging area) implementation."""

import hashlib
import logging
import os
import stat as stat_module
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from zengit.utils.ignore import get_ignore_matcher, load_directory

from .errors import CorruptIndex
from .hash import object_id
from .lock import atomic_write
from .objects import MODE_EXECUTABLE, MODE_FILE, MODE_SYMLINK

logger = logging.getLogger(__name__)

INDEX_SIGNATURE = b'DIRC'
INDEX_VERSION = 2

MODE_REGULAR = 0o100644
MODE_EXEC = 0o100755
MODE_LINK = 0o120000

_ENTRY_FORMAT = '>IIIIIIIIII20sH'
_ENTRY_SIZE = struct.calcsize(_ENTRY_FORMAT)
_U32 = 0xFFFFFFFF


def normalize_mode(st_mode: int) -> int:
    """Collapse a stat mode to one of the three modes Git records for files."""
    if stat_module.S_ISLNK(st_mode):
        return MODE_LINK
    if st_mode & 0o111:
        return MODE_EXEC
    return MODE_REGULAR


def tree_mode(mode: int) -> str:
    """Index mode to tree entry mode string."""
    if mode == MODE_LINK:
        return MODE_SYMLINK
    if mode == MODE_EXEC:
        return MODE_EXECUTABLE
    return MODE_FILE


@dataclass
class IndexEntry:
    """
    Represents a single entry in the index.

    Stores metadata about a staged file including timestamps,
    permissions, and the hash of its content.
    """
    ctime: int          # Change time (seconds)
    ctime_ns: int       # Change time (nanoseconds)
    mtime: int          # Modification time (seconds)
    mtime_ns: int       # Modification time (nanoseconds)
    dev: int            # Device ID
    ino: int            # Inode number
    mode: int           # 0o100644, 0o100755 or 0o120000
    uid: int            # User ID
    gid: int            # Group ID
    size: int           # File size
    sha1: str           # Blob id of content
    flags: int          # Flags (includes name length)
    path: str           # File path, '/' separated

    def __repr__(self) -> str:
        return f"IndexEntry({self.mode:o} {self.sha1[:7]} {self.path})"


@dataclass
class WorkFile:
    """A file found while walking the working tree."""
    path: str
    abs_path: Path
    stat: os.stat_result
    ignored: bool = False

    @property
    def mode(self) -> int:
        return normalize_mode(self.stat.st_mode)

    def read(self) -> bytes:
        """Content as Git stores it: file bytes, or the target of a symlink."""
        if stat_module.S_ISLNK(self.stat.st_mode):
            return os.fsencode(os.readlink(self.abs_path))
        return self.abs_path.read_bytes()

    def oid(self) -> str:
        return object_id('blob', self.read())


def iter_work_tree(work_tree: Path, include_ignored: bool = False) -> Iterator[WorkFile]:
    """
    Walk the working tree yielding regular files and symlinks.

    The .git directory and nested repositories are never entered.
    Ignored paths are skipped unless ``include_ignored`` is set, in which
    case they are yielded with ``ignored=True``.
    """
    work_tree = Path(work_tree)
    matcher = get_ignore_matcher(work_tree)
    stack = [('', False)]

    while stack:
        rel_dir, dir_ignored = stack.pop()
        if not dir_ignored:
            load_directory(matcher, work_tree, rel_dir)
        abs_dir = work_tree / rel_dir if rel_dir else work_tree
        try:
            entries = sorted(os.scandir(abs_dir), key=lambda e: e.name)
        except OSError as e:
            logger.warning("Cannot read directory %s: %s", abs_dir, e)
            continue

        subdirs = []
        for entry in entries:
            if entry.name == '.git':
                continue
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            is_dir = entry.is_dir(follow_symlinks=False)
            ignored = dir_ignored or matcher.is_ignored(rel, is_dir)
            if ignored and not include_ignored:
                continue

            if is_dir:
                if os.path.lexists(os.path.join(entry.path, '.git')):
                    logger.debug("Skipping nested repository %s", rel)
                    continue
                subdirs.append((rel, ignored))
                continue

            st = entry.stat(follow_symlinks=False)
            if stat_module.S_ISREG(st.st_mode) or stat_module.S_ISLNK(st.st_mode):
                yield WorkFile(rel, Path(entry.path), st, ignored)

        stack.extend(reversed(subdirs))


class Index:
    """
    Index (staging area) implementation.

    The index stores a list of files to be included in the next commit.
    Each entry contains file metadata and a hash of the file content.
    """

    def __init__(self):
        """Initialize empty index."""
        self.entries: Dict[str, IndexEntry] = {}
        self.version: int = INDEX_VERSION

    @classmethod
    def load(cls, index_path) -> 'Index':
        index = cls()
        index.read(index_path)
        return index

    def add_entry(
        self,
        path: str,
        sha1: str,
        mode: int,
        size: int,
        mtime: int = 0,
        mtime_ns: int = 0,
        ctime: int = 0,
        ctime_ns: int = 0,
        dev: int = 0,
        ino: int = 0,
        uid: int = 0,
        gid: int = 0
    ) -> None:
        """
        Add or update entry in index.

        Args:
            path: File path relative to repository root
            sha1: Blob id of file content
            mode: File mode (normalized to a Git file mode)
            size: File size in bytes
        """
        flags = min(len(path.encode('utf-8', 'surrogateescape')), 0xFFF)
        self.entries[path] = IndexEntry(
            ctime=ctime & _U32,
            ctime_ns=ctime_ns & _U32,
            mtime=mtime & _U32,
            mtime_ns=mtime_ns & _U32,
            dev=dev & _U32,
            ino=ino & _U32,
            mode=normalize_mode(mode),
            uid=uid & _U32,
            gid=gid & _U32,
            size=size & _U32,
            sha1=sha1,
            flags=flags,
            path=path,
        )

    def stage(self, path: str, sha1: str, st: os.stat_result) -> None:
        """Record ``path`` with the stat data of the file it was read from."""
        self.add_entry(
            path=path,
            sha1=sha1,
            mode=st.st_mode,
            size=st.st_size,
            mtime=st.st_mtime_ns // 1_000_000_000,
            mtime_ns=st.st_mtime_ns % 1_000_000_000,
            ctime=st.st_ctime_ns // 1_000_000_000,
            ctime_ns=st.st_ctime_ns % 1_000_000_000,
            dev=st.st_dev,
            ino=st.st_ino,
            uid=st.st_uid,
            gid=st.st_gid,
        )

    def add_file(self, repo, filepath) -> str:
        """
        Stage a single file.

        Args:
            repo: Repository instance
            filepath: Path to file (absolute or relative to the work tree)

        Returns:
            str: Blob id of staged content
        """
        file_path = Path(filepath)
        if not file_path.is_absolute():
            file_path = repo.work_tree / file_path
        if not os.path.lexists(file_path):
            raise FileNotFoundError(f"File not found: {filepath}")

        st = file_path.lstat()
        if not (stat_module.S_ISREG(st.st_mode) or stat_module.S_ISLNK(st.st_mode)):
            raise ValueError(f"Not a file: {filepath}")

        work_file = WorkFile(file_path.relative_to(repo.work_tree).as_posix(), file_path, st)
        sha1 = repo.put(work_file.read(), 'blob')
        self.stage(work_file.path, sha1, st)
        return sha1

    def add_all(self, repo) -> Dict[str, List[str]]:
        """
        Rescan the working tree and bring the index in line with it.

        Every tracked or non-ignored file is hashed; blobs are written only for content
        that differs from the existing entry. Entries for paths that no
        longer exist are removed.

        Returns:
            Dict with 'added', 'modified' and 'removed' path lists
        """
        changes: Dict[str, List[str]] = {'added': [], 'modified': [], 'removed': []}
        seen = set()

        for work_file in iter_work_tree(repo.work_tree, include_ignored=True):
            existing = self.entries.get(work_file.path)
            if work_file.ignored and existing is None:
                continue
            seen.add(work_file.path)
            content = work_file.read()
            sha1 = object_id('blob', content)
            if existing is not None and existing.sha1 == sha1 and existing.mode == work_file.mode:
                # Refresh stat data only
                self.stage(work_file.path, sha1, work_file.stat)
                continue
            repo.put(content, 'blob')
            self.stage(work_file.path, sha1, work_file.stat)
            changes['modified' if existing is not None else 'added'].append(work_file.path)

        for path in list(self.entries):
            if path not in seen:
                del self.entries[path]
                changes['removed'].append(path)

        logger.debug(
            "Staged %d added, %d modified, %d removed",
            len(changes['added']), len(changes['modified']), len(changes['removed'])
        )
        return changes

    def get_entry(self, path: str) -> Optional[IndexEntry]:
        return self.entries.get(path)

    def clear(self) -> None:
        self.entries.clear()

    def snapshot(self) -> Dict[str, str]:
        """Return the staged path -> blob id mapping."""
        return {path: entry.sha1 for path, entry in self.entries.items()}

    def sorted_entries(self) -> List[IndexEntry]:
        return [self.entries[p] for p in sorted(
            self.entries, key=lambda p: p.encode('utf-8', 'surrogateescape'))]

    def serialize(self) -> bytes:
        """
        Encode the index in Git's binary format.

        Format:
        - Header: 'DIRC' + version (4 bytes) + entry count (4 bytes)
        - Entries: sorted by path, each with metadata + path
        - Checksum: SHA-1 of everything before it
        """
        content = bytearray()
        content.extend(INDEX_SIGNATURE)
        content.extend(struct.pack('>II', self.version, len(self.entries)))

        for entry in self.sorted_entries():
            entry_data = struct.pack(
                _ENTRY_FORMAT,
                entry.ctime,
                entry.ctime_ns,
                entry.mtime,
                entry.mtime_ns,
                entry.dev,
                entry.ino,
                entry.mode,
                entry.uid,
                entry.gid,
                entry.size,
                bytes.fromhex(entry.sha1),
                entry.flags
            )
            name = entry.path.encode('utf-8', 'surrogateescape')
            content.extend(entry_data)
            content.extend(name)
            content.extend(b'\x00')

            # Pad to 8-byte alignment
            entry_len = len(entry_data) + len(name) + 1
            content.extend(b'\x00' * ((8 - (entry_len % 8)) % 8))

        content.extend(hashlib.sha1(content).digest())
        return bytes(content)

    def write(self, index_path) -> None:
        """Write index to disk, replacing the old file atomically."""
        atomic_write(index_path, self.serialize())
        logger.debug("Wrote index with %d entries", len(self.entries))

    def read(self, index_path) -> None:
        """
        Read index from disk. A missing file yields an empty index.

        Raises:
            CorruptIndex: On checksum mismatch, bad signature, unsupported
                          version or truncated entries
        """
        self.entries.clear()
        path = Path(index_path)
        if not path.exists():
            return
        self.parse(path.read_bytes())

    def parse(self, data: bytes) -> None:
        if len(data) < 32:
            raise CorruptIndex("Index file is truncated")

        content, checksum = data[:-20], data[-20:]
        if hashlib.sha1(content).digest() != checksum:
            raise CorruptIndex("Index checksum mismatch")

        if content[:4] != INDEX_SIGNATURE:
            raise CorruptIndex(f"Invalid index signature: {content[:4]!r}")

        version, entry_count = struct.unpack('>II', content[4:12])
        if version != INDEX_VERSION:
            raise CorruptIndex(f"Unsupported index version {version}")
        self.version = version

        offset = 12
        try:
            for _ in range(entry_count):
                fields = struct.unpack(_ENTRY_FORMAT, content[offset:offset + _ENTRY_SIZE])
                offset += _ENTRY_SIZE

                path_end = content.index(b'\x00', offset)
                name = content[offset:path_end]
                path = name.decode('utf-8', 'surrogateescape')
                offset = path_end + 1

                entry_len = _ENTRY_SIZE + len(name) + 1
                offset += (8 - (entry_len % 8)) % 8

                self.entries[path] = IndexEntry(
                    ctime=fields[0],
                    ctime_ns=fields[1],
                    mtime=fields[2],
                    mtime_ns=fields[3],
                    dev=fields[4],
                    ino=fields[5],
                    mode=fields[6],
                    uid=fields[7],
                    gid=fields[8],
                    size=fields[9],
                    sha1=fields[10].hex(),
                    flags=fields[11],
                    path=path
                )
        except (struct.error, ValueError) as e:
            raise CorruptIndex(f"Truncated index entry: {e}") from e
        # Remaining bytes are extensions (TREE, REUC, ...) which are not needed

    def __contains__(self, path: str) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.sorted_entries())

    def __repr__(self) -> str:
        return f"Index(entries={len(self.entries)})"
