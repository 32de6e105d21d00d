"""Unit tests for the staging index."""

import hashlib
import os
import struct

import pytest

from zengit.core.errors import CorruptIndex
from zengit.core.index import MODE_EXEC, MODE_REGULAR, Index, iter_work_tree

BLOB = 'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'


def test_missing_index_is_empty(repo):
    index = Index.load(repo.index_file)
    assert len(index) == 0


def test_serialize_parse_roundtrip():
    index = Index()
    index.add_entry('b.txt', BLOB, 0o100644, 0, mtime=1700000000, mtime_ns=5)
    index.add_entry('a/deep/file.py', BLOB, 0o100755, 12)
    data = index.serialize()

    assert data[:4] == b'DIRC'
    assert struct.unpack('>II', data[4:12]) == (2, 2)
    assert hashlib.sha1(data[:-20]).digest() == data[-20:]

    parsed = Index()
    parsed.parse(data)
    assert [e.path for e in parsed] == ['a/deep/file.py', 'b.txt']
    assert parsed.get_entry('a/deep/file.py').mode == MODE_EXEC
    assert parsed.get_entry('b.txt').mtime == 1700000000
    assert parsed.get_entry('b.txt').mtime_ns == 5
    assert parsed.snapshot() == index.snapshot()


def test_entries_are_padded_to_eight_bytes():
    index = Index()
    for name in ['a', 'ab', 'abc', 'abcdefghij']:
        index.add_entry(name, BLOB, 0o100644, 0)
    data = index.serialize()
    assert (len(data) - 12 - 20) % 8 == 0


def test_corrupt_checksum():
    index = Index()
    index.add_entry('file', BLOB, 0o100644, 0)
    data = bytearray(index.serialize())
    data[20] ^= 0xFF
    with pytest.raises(CorruptIndex):
        Index().parse(bytes(data))


def test_bad_signature():
    body = b'XXXX' + struct.pack('>II', 2, 0)
    body += b'\0' * 20
    data = body + hashlib.sha1(body).digest()
    with pytest.raises(CorruptIndex):
        Index().parse(data)


def test_unsupported_version():
    body = b'DIRC' + struct.pack('>II', 4, 0) + b'\0' * 20
    with pytest.raises(CorruptIndex):
        Index().parse(body + hashlib.sha1(body).digest())


def test_truncated_entries():
    body = b'DIRC' + struct.pack('>II', 2, 3) + b'\0' * 30
    with pytest.raises(CorruptIndex):
        Index().parse(body + hashlib.sha1(body).digest())


def test_short_file():
    with pytest.raises(CorruptIndex):
        Index().parse(b'DIRC')


def test_write_and_load(repo):
    index = Index()
    index.add_entry('file.txt', BLOB, 0o100644, 0)
    index.write(repo.index_file)
    assert Index.load(repo.index_file).snapshot() == {'file.txt': BLOB}


def test_add_file_stores_blob(repo, write):
    write(repo.work_tree, {'hello.txt': 'hello world\n'})
    index = Index()
    oid = index.add_file(repo, 'hello.txt')
    assert oid == '3b18e512dba79e4c8300dd08aeb37f8e728b8dad'
    assert repo.exists(oid)
    entry = index.get_entry('hello.txt')
    assert entry.size == 12
    assert entry.mode == MODE_REGULAR


def test_add_file_missing(repo):
    with pytest.raises(FileNotFoundError):
        Index().add_file(repo, 'nope.txt')


def test_add_all_reports_changes(repo, write):
    write(repo.work_tree, {'a.txt': 'a', 'dir/b.txt': 'b'})
    index = Index()
    changes = index.add_all(repo)
    assert sorted(changes['added']) == ['a.txt', 'dir/b.txt']
    assert changes['modified'] == [] and changes['removed'] == []

    write(repo.work_tree, {'a.txt': 'changed'})
    os.remove(repo.work_tree / 'dir' / 'b.txt')
    changes = index.add_all(repo)
    assert changes == {'added': [], 'modified': ['a.txt'], 'removed': ['dir/b.txt']}

    assert index.add_all(repo) == {'added': [], 'modified': [], 'removed': []}


def test_add_all_skips_ignored_files(repo, write):
    write(repo.work_tree, {'.gitignore': '*.log\nbuild/\n', 'app.py': '', 'debug.log': '',
                           'build/out.bin': b'\0'})
    index = Index()
    index.add_all(repo)
    assert sorted(index.entries) == ['.gitignore', 'app.py']


def test_executable_bit_is_recorded(repo, write):
    write(repo.work_tree, {'run.sh': '#!/bin/sh\n'})
    os.chmod(repo.work_tree / 'run.sh', 0o755)
    index = Index()
    index.add_all(repo)
    assert index.get_entry('run.sh').mode == MODE_EXEC


def test_iter_work_tree_skips_git_and_nested_repos(repo, write):
    write(repo.work_tree, {'top.txt': '', 'vendor/lib/.git/HEAD': 'ref: x', 'vendor/lib/x.c': '',
                           'pkg/mod.py': ''})
    paths = sorted(f.path for f in iter_work_tree(repo.work_tree))
    assert paths == ['pkg/mod.py', 'top.txt']


def test_iter_work_tree_can_include_ignored(repo, write):
    write(repo.work_tree, {'.gitignore': 'secret.txt\n', 'secret.txt': 's'})
    files = {f.path: f.ignored for f in iter_work_tree(repo.work_tree, include_ignored=True)}
    assert files == {'.gitignore': False, 'secret.txt': True}
