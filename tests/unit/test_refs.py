"""Unit tests for reference management."""

import pytest

from zengit.core.errors import InvalidRefName, ObjectNotFound, RefAlreadyExists, RefNotFound
from zengit.core.refs import check_ref_format


def test_unborn_head(repo):
    """Test a fresh repository: HEAD names main, which has no commit yet."""
    refs = repo.refs
    assert refs.head_target() == 'refs/heads/main'
    assert refs.get_current_branch() == 'main'
    assert refs.resolve_head() is None
    assert refs.list_branches() == []
    assert not refs.is_detached_head()


def test_detached_head(repo, sample_commit):
    """Test detaching HEAD at a commit."""
    refs = repo.refs
    refs.set_head(sample_commit.hash, symbolic=False)
    assert refs.is_detached_head()
    assert refs.get_current_branch() is None
    assert refs.head_target() is None
    assert refs.resolve_head() == sample_commit.hash
    assert repo.head_file.read_text() == sample_commit.hash + '\n'


def test_set_head_to_missing_commit(repo):
    with pytest.raises(ObjectNotFound):
        repo.refs.set_head('a' * 40, symbolic=False)


def test_update_head_moves_current_branch(repo, sample_commit):
    """Test update_head writes the branch HEAD points at."""
    refs = repo.refs
    refs.update_head(sample_commit.hash)
    assert refs.resolve('refs/heads/main') == sample_commit.hash
    assert (repo.heads_dir / 'main').read_text() == sample_commit.hash + '\n'
    assert refs.resolve_head() == sample_commit.hash


def test_create_branch(repo, sample_commit):
    """Test creating a new branch."""
    refs = repo.refs
    refs.create_branch('feature/login', sample_commit.hash)
    assert (repo.heads_dir / 'feature' / 'login').read_text().strip() == sample_commit.hash
    assert refs.branch_exists('feature/login')
    assert refs.list_branches() == [('feature/login', sample_commit.hash)]


def test_create_branch_already_exists(repo, sample_commit):
    """Test creating a branch that already exists."""
    repo.refs.create_branch('feature', sample_commit.hash)
    with pytest.raises(RefAlreadyExists):
        repo.refs.create_branch('feature', sample_commit.hash)


def test_create_branch_invalid_name(repo, sample_commit):
    with pytest.raises(InvalidRefName):
        repo.refs.create_branch('bad..name', sample_commit.hash)


def test_write_ref_requires_object(repo):
    with pytest.raises(ObjectNotFound):
        repo.refs.write_ref('refs/heads/ghost', 'b' * 40)


def test_delete_branch(repo, sample_commit):
    """Test deleting a branch also prunes its empty directories."""
    refs = repo.refs
    refs.create_branch('topic/one', sample_commit.hash)
    refs.delete_branch('topic/one')
    assert not refs.branch_exists('topic/one')
    assert not (repo.heads_dir / 'topic').exists()
    assert repo.heads_dir.is_dir()


def test_delete_current_branch_fails(repo, sample_commit):
    repo.refs.update_head(sample_commit.hash)
    with pytest.raises(ValueError):
        repo.refs.delete_branch('main')


def test_delete_missing_branch(repo):
    with pytest.raises(RefNotFound):
        repo.refs.delete_branch('nope')


@pytest.mark.parametrize('name', ['..', '../tags/v1', 'a/../../HEAD'])
def test_branch_names_are_validated(repo, sample_commit, name):
    """Test branch operations refuse names that would resolve outside refs/heads."""
    repo.refs.create_tag('v1', sample_commit.hash)
    with pytest.raises(InvalidRefName):
        repo.refs.delete_branch(name)
    with pytest.raises(InvalidRefName):
        repo.refs.branch_ref(name)
    assert not repo.refs.branch_exists(name)
    assert repo.refs.tag_exists('v1')


def test_branch_exists_with_revision_syntax(repo, sample_commit):
    repo.refs.update_head(sample_commit.hash)
    assert not repo.refs.branch_exists('HEAD~1')
    assert not repo.refs.tag_exists('main^')


def test_refs_cannot_leave_control_directory(repo, sample_commit):
    """Test full ref names with empty, '.' or '..' components are refused."""
    config = repo.git_dir / 'config'
    before = config.read_bytes()
    refs = repo.refs
    for name in ('refs/tags/../../config', 'refs/heads/./x', 'refs//heads/x'):
        with pytest.raises(InvalidRefName):
            refs.write_ref(name, sample_commit.hash)
        with pytest.raises(InvalidRefName):
            refs.delete_ref(name)
        assert refs.read_raw(name) is None
    assert config.read_bytes() == before
    assert refs.read_raw('refs/../HEAD') is None


@pytest.mark.parametrize('name', ['main', 'feature/x', 'v1.0', 'fix-123', 'release_2'])
def test_valid_ref_names(name):
    assert check_ref_format(name)


@pytest.mark.parametrize('name', [
    '', '@', '/lead', 'trail/', 'a//b', '-dash', 'dot.', 'a..b', 'a@{b', 'sp ace',
    'til~de', 'car^et', 'co:lon', 'q?', 'st*r', 'br[ack', 'back\\slash', '.hidden',
    'x/.hidden', 'name.lock', 'dir/name.lock',
])
def test_invalid_ref_names(name):
    assert not check_ref_format(name)


def test_packed_refs_are_read(repo, sample_commit):
    """Test refs stored only in packed-refs, with peeled lines."""
    repo.packed_refs_file.write_text(
        '# pack-refs with: peeled fully-peeled sorted\n'
        f'{sample_commit.hash} refs/heads/packed\n'
        f'{"c" * 40} refs/tags/v1\n'
        f'^{sample_commit.hash}\n'
    )
    refs = repo.refs
    heads, peeled = refs.read_packed_refs()
    assert heads['refs/heads/packed'] == sample_commit.hash
    assert peeled == {'refs/tags/v1': sample_commit.hash}
    assert refs.read_ref('packed') == sample_commit.hash
    assert ('packed', sample_commit.hash) in refs.list_branches()


def test_loose_ref_overrides_packed(repo, sample_commit, signature):
    from zengit.core.objects import Commit

    other = Commit.create(sample_commit.tree, [sample_commit.hash], signature, signature, 'Child')
    repo.write_object(other)
    repo.packed_refs_file.write_text(f'{sample_commit.hash} refs/heads/main\n')
    repo.refs.write_ref('refs/heads/main', other.hash)
    assert repo.refs.list_branches() == [('main', other.hash)]


def test_delete_packed_ref(repo, sample_commit):
    repo.packed_refs_file.write_text(
        f'{sample_commit.hash} refs/heads/old\n{sample_commit.hash} refs/heads/keep\n'
    )
    repo.refs.delete_branch('old')
    assert not repo.refs.branch_exists('old')
    assert repo.refs.branch_exists('keep')


def test_symbolic_ref_cycle(repo):
    (repo.heads_dir / 'a').write_text('ref: refs/heads/b\n')
    (repo.heads_dir / 'b').write_text('ref: refs/heads/a\n')
    with pytest.raises(RefNotFound):
        repo.refs.resolve('refs/heads/a')


def test_expand_prefers_tags_over_branches(repo, sample_commit):
    refs = repo.refs
    refs.create_branch('same', sample_commit.hash)
    refs.create_tag('same', sample_commit.hash)
    assert refs.expand('same') == 'refs/tags/same'
    assert refs.expand('heads/same') == 'refs/heads/same'
    assert refs.expand('missing') is None


def test_resolve_reference(repo, sample_commit):
    """Test resolving full ids, abbreviated ids, branches and HEAD."""
    refs = repo.refs
    refs.update_head(sample_commit.hash)
    assert refs.resolve_reference(sample_commit.hash) == sample_commit.hash
    assert refs.resolve_reference(sample_commit.hash.upper()) == sample_commit.hash
    assert refs.resolve_reference(sample_commit.hash[:8]) == sample_commit.hash
    assert refs.resolve_reference('main') == sample_commit.hash
    assert refs.resolve_reference('HEAD') == sample_commit.hash
    assert refs.resolve_reference('nonexistent') is None
    assert refs.resolve_reference('abc') is None


def test_tags(repo, sample_commit):
    refs = repo.refs
    refs.create_tag('v1.0', sample_commit.hash)
    assert refs.tag_exists('v1.0')
    assert refs.list_tags() == [('v1.0', sample_commit.hash)]
    with pytest.raises(RefAlreadyExists):
        refs.create_tag('v1.0', sample_commit.hash)
    refs.delete_tag('v1.0')
    assert refs.list_tags() == []
