"""Shared pytest fixtures for zengit tests."""

import hashlib
import os
import shutil
import struct
import tempfile
import zlib
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

from zengit.api import GitRepo
from zengit.core.config import Config
from zengit.core.hash import object_id
from zengit.core.objects import Blob, Commit, Signature, Tree
from zengit.core.pack import OBJ_OFS_DELTA, OBJ_REF_DELTA
from zengit.core.repository import Repository

AUTHOR = ("Test User", "test@example.com")

PACK_TYPES = {'commit': 1, 'tree': 2, 'blob': 3, 'tag': 4}


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep the user's ~/.gitconfig and ZENGIT_* variables out of every test."""
    home = tmp_path_factory.mktemp('home')
    monkeypatch.setattr(Config, 'GLOBAL_CONFIG_PATH', home / '.gitconfig')
    for key in list(os.environ):
        if key.startswith('ZENGIT_'):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def repo(temp_dir):
    """Create an initialized repository."""
    repo = Repository(str(temp_dir))
    repo.init()
    yield repo
    repo.close()


@pytest.fixture
def repo_with_config(repo):
    """Create a repository with user identity set."""
    repo.config.set('user', 'name', AUTHOR[0])
    repo.config.set('user', 'email', AUTHOR[1])
    return repo


@pytest.fixture
def git_repo(repo):
    """Facade handle on an initialized, empty repository."""
    handle = GitRepo(str(repo.work_tree))
    yield handle
    handle.close()


def write_files(root: Path, files: dict) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)


def commit_files(handle: GitRepo, files: dict, message: str = "Test commit") -> str:
    """Write files into the work tree, stage everything and commit."""
    write_files(handle.path, files)
    handle.add_all()
    return handle.commit(message, *AUTHOR)


@pytest.fixture
def make_commit():
    return commit_files


@pytest.fixture
def write():
    return write_files


@pytest.fixture
def committed_repo(git_repo):
    """Repository with two commits on main."""
    commit_files(git_repo, {'file1.txt': 'Hello, World!\n'}, "First commit")
    commit_files(git_repo, {'file2.txt': 'Second file\n', 'src/app.py': 'print("hi")\n'},
                 "Second commit")
    return git_repo


@pytest.fixture
def signature():
    return Signature(AUTHOR[0], AUTHOR[1], 1700000000, '+0100')


@pytest.fixture
def sample_commit(repo, signature):
    """A stored commit with one file, not referenced by any branch."""
    blob_hash = repo.write_object(Blob(b"Hello, World!\n"))
    tree = Tree()
    tree.add_entry('100644', 'blob', blob_hash, 'test.txt')
    tree_hash = repo.write_object(tree)
    commit = Commit.create(tree_hash, [], signature, signature, "Test commit")
    repo.write_object(commit)
    return commit


# -- packfile construction -------------------------------------------------

def entry_header(obj_type: int, size: int) -> bytes:
    out = bytearray()
    c = (obj_type << 4) | (size & 0x0F)
    size >>= 4
    while size:
        out.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    out.append(c)
    return bytes(out)


def encode_ofs(offset: int) -> bytes:
    out = [offset & 0x7F]
    offset >>= 7
    while offset:
        offset -= 1
        out.append(0x80 | (offset & 0x7F))
        offset >>= 7
    return bytes(reversed(out))


def encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def make_delta(base: bytes, keep: int, tail: bytes) -> bytes:
    """Delta producing ``base[:keep] + tail``."""
    out = bytearray(encode_varint(len(base)) + encode_varint(keep + len(tail)))
    if keep:
        out += bytes([0x80 | 0x10 | 0x20, keep & 0xFF, (keep >> 8) & 0xFF])
    for i in range(0, len(tail), 127):
        chunk = tail[i:i + 127]
        out.append(len(chunk))
        out += chunk
    return bytes(out)


def build_pack(entries):
    """
    Build a pack from entries.

    Each entry is one of:
        ('blob', data) / ('tree', data) / ('commit', data) / ('tag', data)
        ('ofs', base_index, delta)
        ('ref', base_oid, delta)

    Returns:
        Tuple of (pack bytes, list of entry offsets)
    """
    body = bytearray(b'PACK' + struct.pack('>II', 2, len(entries)))
    offsets = []
    for entry in entries:
        offset = len(body)
        offsets.append(offset)
        kind = entry[0]
        if kind == 'ofs':
            _, base_index, delta = entry
            body += entry_header(OBJ_OFS_DELTA, len(delta))
            body += encode_ofs(offset - offsets[base_index])
            body += zlib.compress(delta)
        elif kind == 'ref':
            _, base_oid, delta = entry
            body += entry_header(OBJ_REF_DELTA, len(delta))
            body += bytes.fromhex(base_oid)
            body += zlib.compress(delta)
        else:
            data = entry[1]
            body += entry_header(PACK_TYPES[kind], len(data))
            body += zlib.compress(data)
    body += hashlib.sha1(body).digest()
    return bytes(body), offsets


def build_idx(pack: bytes, oids_offsets):
    """Version 2 pack index for (oid, offset) pairs."""
    items = sorted((bytes.fromhex(oid), offset) for oid, offset in oids_offsets)
    fanout = [0] * 256
    for name, _ in items:
        fanout[name[0]] += 1
    for i in range(1, 256):
        fanout[i] += fanout[i - 1]
    out = bytearray(b'\xfftOc' + struct.pack('>I', 2))
    out += b''.join(struct.pack('>I', n) for n in fanout)
    out += b''.join(name for name, _ in items)
    out += b'\0\0\0\0' * len(items)
    out += b''.join(struct.pack('>I', offset) for _, offset in items)
    out += pack[-20:]
    out += hashlib.sha1(out).digest()
    return bytes(out)


def pack_repository(repo: Repository) -> bytes:
    """Pack every loose object of a repository as full (undeltified) entries."""
    entries = []
    for obj_dir in sorted(repo.objects_dir.iterdir()):
        if obj_dir.is_dir() and len(obj_dir.name) == 2:
            for obj_file in sorted(obj_dir.iterdir()):
                kind, data = repo.get(obj_dir.name + obj_file.name)
                entries.append((kind, data))
    pack, _ = build_pack(entries)
    return pack


@pytest.fixture
def packs():
    return SimpleNamespace(
        build_pack=build_pack,
        build_idx=build_idx,
        make_delta=make_delta,
        encode_ofs=encode_ofs,
        entry_header=entry_header,
        pack_repository=pack_repository,
        object_id=object_id,
    )


# -- fake HTTP -------------------------------------------------------------

class FakeResponse:
    def __init__(self, body: bytes = b'', content_type: str = '', status: int = 200, chunk: int = 7):
        self.body = body
        self.headers = {'Content-Type': content_type} if content_type else {}
        self.status_code = status
        self.chunk = chunk
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), self.chunk):
            yield self.body[i:i + self.chunk]

    def close(self):
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; replays queued responses."""

    def __init__(self, responses=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.requests = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append(SimpleNamespace(method=method, url=url, **kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


@pytest.fixture
def http():
    return SimpleNamespace(Response=FakeResponse, Session=FakeSession)
