"""Unit tests for tag management."""

import pytest

from zengit.core.errors import InvalidTagName, RefAlreadyExists, RefNotFound
from zengit.core.objects import Tag
from zengit.operations.tags import TagManager


@pytest.fixture
def tags(committed_repo):
    committed_repo.repo.config.set('user', 'name', 'Tagger')
    committed_repo.repo.config.set('user', 'email', 'tagger@example.com')
    return TagManager(committed_repo.repo)


def test_lightweight_tag(tags, committed_repo):
    """Test a lightweight tag borrows the commit's author and time."""
    head = committed_repo.get_head_commit_hash()
    assert tags.create_tag('v1.0') == head

    [info] = tags.list_tags()
    commit = committed_repo.repo.read_object(head)
    assert info.name == 'v1.0'
    assert info.target_commit == head
    assert info.message == ''
    assert not info.annotated
    assert info.tag_oid is None
    assert info.tagger_name == commit.author.name
    assert info.tag_time == commit.author.timestamp


def test_annotated_tag(tags, committed_repo):
    head = committed_repo.get_head_commit_hash()
    tag_oid = tags.create_tag('v2.0', message='Second release')
    assert tag_oid != head

    tag = committed_repo.repo.read_object(tag_oid)
    assert isinstance(tag, Tag)
    assert tag.object == head
    assert tag.tagger.name == 'Tagger'

    [info] = tags.list_tags()
    assert info.annotated
    assert info.tag_oid == tag_oid
    assert info.target_commit == head
    assert info.message == 'Second release\n'
    assert info.tagger_email == 'tagger@example.com'


def test_tag_on_older_commit(tags, committed_repo):
    first = committed_repo.repo.read_object(committed_repo.get_head_commit_hash()).parents[0]
    tags.create_tag('old', target=first[:12])
    assert tags.resolve_tag('old') == first


def test_tag_on_tag_peels_to_commit(tags, committed_repo):
    tags.create_tag('v1', message='one')
    tags.create_tag('v1-alias', target='v1')
    assert tags.resolve_tag('v1-alias') == committed_repo.get_head_commit_hash()


def test_tags_sorted_by_name(tags):
    for name in ['b', 'a', 'c']:
        tags.create_tag(name)
    assert [t.name for t in tags.list_tags()] == ['a', 'b', 'c']


def test_duplicate_tag(tags):
    tags.create_tag('v1')
    with pytest.raises(RefAlreadyExists):
        tags.create_tag('v1', message='again')


@pytest.mark.parametrize('name', ['bad name', 'v1..2', '-v', 'x.lock'])
def test_invalid_tag_name(tags, name):
    with pytest.raises(InvalidTagName):
        tags.create_tag(name)


def test_tag_without_commits(git_repo):
    with pytest.raises(RefNotFound):
        TagManager(git_repo.repo).create_tag('v0')


def test_tag_unknown_target(tags):
    with pytest.raises(RefNotFound):
        tags.create_tag('v1', target='no-such-ref')


def test_tag_must_name_a_commit(tags, committed_repo):
    head = committed_repo.repo.read_object(committed_repo.get_head_commit_hash())
    with pytest.raises(RefNotFound):
        tags.create_tag('tree-tag', target=head.tree)


def test_delete_tag(tags):
    tags.create_tag('v1')
    tags.delete_tag('v1')
    assert tags.list_tags() == []
    with pytest.raises(RefNotFound):
        tags.delete_tag('v1')
    with pytest.raises(RefNotFound):
        tags.resolve_tag('v1')


def test_tags_on_non_commits_are_skipped(tags, committed_repo):
    blob = committed_repo.repo.put(b'loose data', 'blob')
    committed_repo.repo.refs.create_tag('blob-tag', blob)
    tags.create_tag('real')
    assert [t.name for t in tags.list_tags()] == ['real']


def test_tag_names_cannot_reach_branches(tags, committed_repo):
    """Test a tag name climbing out of refs/tags leaves branches alone."""
    committed_repo.create_branch('feature')
    with pytest.raises(InvalidTagName):
        tags.delete_tag('../heads/feature')
    with pytest.raises(InvalidTagName):
        tags.resolve_tag('../heads/feature')
    with pytest.raises(InvalidTagName):
        committed_repo.delete_tag('../heads/feature')
    assert committed_repo.list_branches() == ['feature', 'main']
