"""Git objects for zengit."""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import CorruptObject
from .hash import object_id

MODE_FILE = '100644'
MODE_EXECUTABLE = '100755'
MODE_SYMLINK = '120000'
MODE_TREE = '40000'
MODE_GITLINK = '160000'

_SIGNATURE_RE = re.compile(r'^(.*?) ?<([^>]*)> (-?\d+) ([+-]\d{4})$')


def local_timezone(timestamp: Optional[int] = None) -> str:
    """Return the local UTC offset for a timestamp formatted as ``+hhmm``."""
    if timestamp is None:
        timestamp = int(time.time())
    offset = time.localtime(timestamp).tm_gmtoff // 60
    sign = '-' if offset < 0 else '+'
    offset = abs(offset)
    return f"{sign}{offset // 60:02d}{offset % 60:02d}"


@dataclass(frozen=True)
class Signature:
    """Identity plus time stamp, as recorded for authors, committers and taggers."""

    name: str
    email: str
    timestamp: int
    timezone: str = '+0000'

    @classmethod
    def now(cls, name: str, email: str) -> 'Signature':
        timestamp = int(time.time())
        return cls(name, email, timestamp, local_timezone(timestamp))

    @classmethod
    def parse(cls, text: str) -> 'Signature':
        """
        Parse ``Name <email> <timestamp> <timezone>``.

        Raises:
            CorruptObject: If the line is malformed
        """
        match = _SIGNATURE_RE.match(text)
        if not match:
            raise CorruptObject(f"Malformed signature: {text!r}")
        name, email, timestamp, timezone = match.groups()
        return cls(name, email, int(timestamp), timezone)

    def format(self) -> str:
        return f"{self.name} <{self.email}> {self.timestamp} {self.timezone}"

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class GitObject(ABC):
    """Base class for all Git objects."""

    def __init__(self):
        self._hash: Optional[str] = None

    @abstractmethod
    def serialize(self) -> bytes:
        """
        Serialize object to bytes.

        Returns:
            bytes: Serialized object data
        """

    @abstractmethod
    def deserialize(self, data: bytes) -> None:
        """
        Deserialize object from bytes.

        Args:
            data: Serialized object data
        """

    @property
    def type(self) -> str:
        """
        Return object type name.

        Returns:
            str: Object type (blob, tree, commit, tag)
        """
        return self.__class__.__name__.lower()

    def compute_hash(self) -> str:
        """
        Compute and cache object hash.

        Objects are hashed with a header containing the type and size.
        Format: <type> <size>\\0<content>

        Returns:
            str: 40-character SHA-1 hash
        """
        if self._hash is None:
            self._hash = object_id(self.type, self.serialize())
        return self._hash

    @property
    def hash(self) -> str:
        return self.compute_hash()


class Blob(GitObject):
    """
    Represents file content.

    A blob stores the raw content of a file without any metadata
    like filename or permissions.
    """

    def __init__(self, data: Optional[bytes] = None):
        super().__init__()
        self.data = data or b''

    def serialize(self) -> bytes:
        return self.data

    def deserialize(self, data: bytes) -> None:
        self.data = data
        self._hash = None

    def __repr__(self) -> str:
        return f"Blob(hash={self.hash[:7]}, size={len(self.data)})"


class TreeEntry:
    """
    Represents a single entry in a tree.

    Each entry contains:
    - mode: File mode ('100644' file, '100755' executable, '120000' symlink,
      '40000' directory, '160000' gitlink)
    - type: Object type ('blob', 'tree' or 'commit')
    - hash: SHA-1 hash of the object
    - name: Filename or directory name
    """

    def __init__(self, mode: str, obj_type: str, obj_hash: str, name: str):
        self.mode = mode
        self.type = obj_type
        self.hash = obj_hash
        self.name = name

    @property
    def sort_key(self) -> str:
        # Git compares directory names as if they ended with '/'
        return self.name + '/' if self.type == 'tree' else self.name

    def __repr__(self) -> str:
        return f"TreeEntry({self.mode} {self.type} {self.hash[:7]} {self.name})"

    def __lt__(self, other: 'TreeEntry') -> bool:
        return self.sort_key.encode('utf-8', 'surrogateescape') < \
            other.sort_key.encode('utf-8', 'surrogateescape')

    def __eq__(self, other) -> bool:
        if not isinstance(other, TreeEntry):
            return NotImplemented
        return (self.mode, self.type, self.hash, self.name) == \
            (other.mode, other.type, other.hash, other.name)


def mode_type(mode: str) -> str:
    """Map a tree entry mode to the type of object it points at."""
    if mode in (MODE_TREE, '040000'):
        return 'tree'
    if mode == MODE_GITLINK:
        return 'commit'
    return 'blob'


class Tree(GitObject):
    """
    Represents directory structure.

    A tree contains entries pointing to blobs (files) and other trees
    (subdirectories).
    """

    def __init__(self):
        super().__init__()
        self.entries: List[TreeEntry] = []

    def add_entry(self, mode: str, obj_type: str, obj_hash: str, name: str) -> None:
        """
        Add entry to tree, replacing any entry with the same name.

        Args:
            mode: File mode
            obj_type: Object type ('blob', 'tree' or 'commit')
            obj_hash: Object hash
            name: Entry name
        """
        if not name or '/' in name or name in ('.', '..'):
            raise ValueError(f"Invalid tree entry name: {name!r}")
        self.entries = [e for e in self.entries if e.name != name]
        self.entries.append(TreeEntry(mode, obj_type, obj_hash, name))
        self.entries.sort()
        self._hash = None

    def get(self, name: str) -> Optional[TreeEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def serialize(self) -> bytes:
        """
        Serialize tree to Git format.

        Format: <mode> <name>\\0<20-byte hash>, entries in Git sort order.

        Returns:
            bytes: Serialized tree data
        """
        parts = []
        for entry in sorted(self.entries):
            mode_name = f"{entry.mode} {entry.name}".encode('utf-8', 'surrogateescape')
            parts.append(mode_name + b'\0' + bytes.fromhex(entry.hash))
        return b''.join(parts)

    def deserialize(self, data: bytes) -> None:
        """
        Deserialize tree from Git format.

        Raises:
            CorruptObject: If an entry is truncated
        """
        entries = []
        pos = 0
        try:
            while pos < len(data):
                space_pos = data.index(b' ', pos)
                mode = data[pos:space_pos].decode('ascii')
                null_pos = data.index(b'\0', space_pos)
                name = data[space_pos + 1:null_pos].decode('utf-8', 'surrogateescape')
                hash_bytes = data[null_pos + 1:null_pos + 21]
                if len(hash_bytes) != 20:
                    raise CorruptObject("Truncated tree entry")
                entries.append(TreeEntry(mode, mode_type(mode), hash_bytes.hex(), name))
                pos = null_pos + 21
        except (ValueError, UnicodeDecodeError) as e:
            raise CorruptObject(f"Malformed tree: {e}") from e
        self.entries = entries
        self._hash = None

    def __repr__(self) -> str:
        return f"Tree(entries={len(self.entries)})"


def _split_headers(data: bytes) -> Tuple[List[Tuple[str, str]], bytes]:
    """Split a commit or tag body into (header list, message bytes)."""
    headers: List[Tuple[str, str]] = []
    pos = 0
    while pos < len(data):
        end = data.find(b'\n', pos)
        if end == -1:
            end = len(data)
        line = data[pos:end]
        pos = end + 1
        if not line:
            return headers, data[pos:]
        text = line.decode('utf-8', 'replace')
        if text.startswith(' ') and headers:
            # continuation of a multi-line header (gpgsig, mergetag)
            key, value = headers[-1]
            headers[-1] = (key, value + '\n' + text[1:])
            continue
        key, _, value = text.partition(' ')
        headers.append((key, value))
    return headers, b''


def _format_headers(headers: List[Tuple[str, str]]) -> List[str]:
    return [f"{key} {value.replace(chr(10), chr(10) + ' ')}" for key, value in headers]


class Commit(GitObject):
    """
    Represents a commit with metadata.

    A commit captures:
    - Snapshot of project (tree hash)
    - Parent commit(s) for history
    - Author and committer signatures
    - Commit message
    """

    def __init__(self):
        super().__init__()
        self.tree: str = ''
        self.parents: List[str] = []
        self.author: Optional[Signature] = None
        self.committer: Optional[Signature] = None
        self.extra_headers: List[Tuple[str, str]] = []
        self.message: str = ''

    @property
    def commit_time(self) -> int:
        return self.committer.timestamp if self.committer else 0

    def serialize(self) -> bytes:
        """
        Serialize commit to Git format.

        Format:
        tree <tree-hash>
        parent <parent-hash>  (zero or more)
        author Name <email> <timestamp> <timezone>
        committer Name <email> <timestamp> <timezone>

        <commit message>
        """
        lines = [f'tree {self.tree}']
        lines.extend(f'parent {parent}' for parent in self.parents)
        lines.append(f'author {self.author.format()}')
        lines.append(f'committer {self.committer.format()}')
        lines.extend(_format_headers(self.extra_headers))
        lines.append('')
        lines.append(self.message)
        return '\n'.join(lines).encode('utf-8')

    def deserialize(self, data: bytes) -> None:
        headers, message = _split_headers(data)
        self.tree = ''
        self.parents = []
        self.author = None
        self.committer = None
        self.extra_headers = []
        for key, value in headers:
            if key == 'tree':
                self.tree = value
            elif key == 'parent':
                self.parents.append(value)
            elif key == 'author':
                self.author = Signature.parse(value)
            elif key == 'committer':
                self.committer = Signature.parse(value)
            else:
                self.extra_headers.append((key, value))
        if not self.tree or self.author is None or self.committer is None:
            raise CorruptObject("Commit is missing tree, author or committer")
        self.message = message.decode('utf-8', 'replace')
        self._hash = None

    @classmethod
    def create(
        cls,
        tree_hash: str,
        parent_hashes: List[str],
        author: Signature,
        committer: Signature,
        message: str,
    ) -> 'Commit':
        """
        Create a new commit.

        Args:
            tree_hash: Hash of tree object
            parent_hashes: List of parent commit hashes
            author: Author signature
            committer: Committer signature
            message: Commit message (a trailing newline is added if missing)

        Returns:
            Commit: New commit object
        """
        commit = cls()
        commit.tree = tree_hash
        commit.parents = list(parent_hashes)
        commit.author = author
        commit.committer = committer
        commit.message = message if message.endswith('\n') else message + '\n'
        return commit

    def __repr__(self) -> str:
        parent_info = f", parents={len(self.parents)}" if self.parents else ""
        msg_preview = self.message.split('\n')[0][:50]
        return f"Commit(hash={self.hash[:7]}{parent_info}, msg='{msg_preview}')"


class Tag(GitObject):
    """
    Represents an annotated tag.

    Format:
    object <target-hash>
    type <target-type>
    tag <name>
    tagger Name <email> <timestamp> <timezone>

    <message>
    """

    def __init__(self):
        super().__init__()
        self.object: str = ''
        self.object_type: str = 'commit'
        self.tag: str = ''
        self.tagger: Optional[Signature] = None
        self.extra_headers: List[Tuple[str, str]] = []
        self.message: str = ''

    def serialize(self) -> bytes:
        lines = [
            f'object {self.object}',
            f'type {self.object_type}',
            f'tag {self.tag}',
        ]
        if self.tagger is not None:
            lines.append(f'tagger {self.tagger.format()}')
        lines.extend(_format_headers(self.extra_headers))
        lines.append('')
        lines.append(self.message)
        return '\n'.join(lines).encode('utf-8')

    def deserialize(self, data: bytes) -> None:
        headers, message = _split_headers(data)
        self.extra_headers = []
        self.tagger = None
        for key, value in headers:
            if key == 'object':
                self.object = value
            elif key == 'type':
                self.object_type = value
            elif key == 'tag':
                self.tag = value
            elif key == 'tagger':
                self.tagger = Signature.parse(value)
            else:
                self.extra_headers.append((key, value))
        if not self.object:
            raise CorruptObject("Tag is missing its target object")
        self.message = message.decode('utf-8', 'replace')
        self._hash = None

    @classmethod
    def create(cls, name: str, target: str, target_type: str,
               tagger: Signature, message: str) -> 'Tag':
        tag = cls()
        tag.tag = name
        tag.object = target
        tag.object_type = target_type
        tag.tagger = tagger
        tag.message = message if message.endswith('\n') else message + '\n'
        return tag

    def __repr__(self) -> str:
        return f"Tag(name={self.tag}, object={self.object[:7]})"


OBJECT_TYPES = {
    'blob': Blob,
    'tree': Tree,
    'commit': Commit,
    'tag': Tag,
}


def parse_object(kind: str, data: bytes, oid: Optional[str] = None) -> GitObject:
    """
    Build a typed object from raw content.

    Args:
        kind: Object type
        data: Raw object content (without header)
        oid: Known object id; cached on the result so re-serialization
             differences never change the reported hash

    Raises:
        CorruptObject: If the type is unknown or the content is malformed
    """
    cls = OBJECT_TYPES.get(kind)
    if cls is None:
        raise CorruptObject(f"Unknown object type: {kind}")
    obj = cls()
    obj.deserialize(data)
    if oid is not None:
        obj._hash = oid
    return obj
