"""Unit tests for remote configuration and the local transport."""

import pytest

from zengit.core.errors import NetworkError, NotARepository
from zengit.remote.http import SmartHttpTransport
from zengit.remote.local import LocalTransport
from zengit.remote.remote import RemoteManager
from zengit.remote.transport import parse_url


@pytest.mark.parametrize('url, expected', [
    ('file:///srv/repo', ('file', '/srv/repo')),
    ('/srv/repo', ('file', '/srv/repo')),
    ('../sibling', ('file', '../sibling')),
    ('https://example.com/r.git', ('https', 'https://example.com/r.git')),
    ('http://example.com/r.git', ('http', 'http://example.com/r.git')),
    ('git://example.com/r.git', ('git', 'git://example.com/r.git')),
    ('git@example.com:r.git', ('ssh', 'git@example.com:r.git')),
    ('ssh://example.com/r.git', ('ssh', 'ssh://example.com/r.git')),
])
def test_parse_url(url, expected):
    assert parse_url(url) == expected


def test_add_list_remove_remote(repo):
    remotes = RemoteManager(repo)
    remotes.add_remote('origin', 'https://example.com/r.git')
    remotes.add_remote('backup', '/srv/backup')

    assert remotes.list_remotes() == {
        'origin': 'https://example.com/r.git',
        'backup': '/srv/backup',
    }
    assert remotes.get_remote_url() == 'https://example.com/r.git'
    assert repo.config.get('remote "origin"', 'fetch') == '+refs/heads/*:refs/remotes/origin/*'

    assert remotes.remove_remote('backup')
    assert not remotes.remove_remote('backup')
    assert remotes.get_remote_url('backup') is None


def test_open_transport_by_scheme(repo, http):
    remotes = repo.remote
    assert isinstance(remotes.open_transport('/some/path'), LocalTransport)
    transport = remotes.open_transport('https://example.com/r.git', session=http.Session())
    assert isinstance(transport, SmartHttpTransport)
    assert transport.timeout == 60
    with pytest.raises(NetworkError):
        remotes.open_transport('git@example.com:r.git')


def test_transfer_timeout_from_config(repo, http):
    repo.config.set('zengit', 'transferTimeout', '7')
    transport = repo.remote.open_transport('https://example.com/r.git', session=http.Session())
    assert transport.timeout == 7


def test_local_transport_advertises_refs(committed_repo):
    committed_repo.create_tag('v1')
    committed_repo.create_branch('dev', 'HEAD~1')
    transport = LocalTransport(str(committed_repo.path))
    adv = transport.discover_refs()

    head = committed_repo.get_head_commit_hash()
    assert adv.head == head
    assert adv.head_target == 'refs/heads/main'
    assert adv.branches['main'] == head
    assert set(adv.branches) == {'main', 'dev'}
    assert adv.tags == {'v1': head}
    assert adv.default_branch() == 'main'
    transport.close()


def test_local_transport_copies_objects(committed_repo, tmp_path):
    from zengit.core.repository import Repository

    dest = Repository(str(tmp_path / 'copy')).init()
    transport = LocalTransport(str(committed_repo.path))
    copied = transport.fetch(dest, [])
    assert copied > 0
    head = committed_repo.get_head_commit_hash()
    assert dest.read_object(head).message == 'Second commit\n'
    # a second fetch finds everything present
    assert transport.fetch(dest, []) == 0
    dest.close()


def test_local_transport_copies_packs(repo, tmp_path, packs):
    from zengit.core.repository import Repository

    blob = b'packed blob\n'
    oid = packs.object_id('blob', blob)
    pack, offsets = packs.build_pack([('blob', blob)])
    (repo.pack_dir / 'pack-test.pack').write_bytes(pack)
    (repo.pack_dir / 'pack-test.idx').write_bytes(packs.build_idx(pack, [(oid, offsets[0])]))

    dest = Repository(str(tmp_path / 'copy')).init()
    assert LocalTransport(str(repo.work_tree)).fetch(dest, []) == 2
    assert dest.get(oid) == ('blob', blob)
    dest.close()


def test_local_transport_not_a_repository(tmp_path):
    with pytest.raises(NotARepository):
        LocalTransport(str(tmp_path / 'missing')).discover_refs()
