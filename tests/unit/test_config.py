"""Unit tests for configuration."""

from zengit.core.config import DEFAULT_TRANSFER_TIMEOUT, Config, get_config


def test_repo_config_overrides_global(repo, isolated_config):
    (isolated_config / '.gitconfig').write_text('[user]\n\tname = Global Name\n\temail = g@example.com\n')
    config = get_config(repo)
    assert config.get_user_identity() == ('Global Name', 'g@example.com')

    config.set('user', 'name', 'Repo Name')
    assert config.get('user', 'name') == 'Repo Name'
    assert config.get('user', 'email') == 'g@example.com'


def test_environment_overrides_files(repo, monkeypatch):
    config = get_config(repo)
    config.set('user', 'name', 'Repo Name')
    monkeypatch.setenv('ZENGIT_USER_NAME', 'Env Name')
    assert config.get('user', 'name') == 'Env Name'


def test_set_persists_to_disk(repo):
    get_config(repo).set('remote "origin"', 'url', 'https://example.com/x.git')
    assert 'url = https://example.com/x.git' in repo.config_file.read_text()
    assert Config(repo.config_file).get('remote "origin"', 'url') == 'https://example.com/x.git'


def test_global_set(isolated_config):
    Config().set('user', 'email', 'me@example.com', global_config=True)
    assert Config().get('user', 'email') == 'me@example.com'
    assert (isolated_config / '.gitconfig').exists()


def test_unset(repo):
    config = get_config(repo)
    config.set('alias', 'co', 'checkout')
    assert config.unset('alias', 'co')
    assert not config.unset('alias', 'co')
    assert config.get('alias', 'co') is None
    assert 'alias' not in config.sections()


def test_fallback_and_typed_values(repo):
    config = get_config(repo)
    assert config.get('core', 'missing', fallback='dflt') == 'dflt'
    assert config.get_bool('core', 'bare') is False

    config.set('zengit', 'transferTimeout', 'soon')
    assert config.transfer_timeout == DEFAULT_TRANSFER_TIMEOUT
    config.set('zengit', 'transferTimeout', '5')
    assert config.transfer_timeout == 5


def test_refuse_dirty_checkout(repo, monkeypatch):
    config = get_config(repo)
    assert config.refuse_dirty_checkout is True
    config.set('zengit', 'refuseDirtyCheckout', 'false')
    assert config.refuse_dirty_checkout is False
    monkeypatch.setenv('ZENGIT_ZENGIT_REFUSEDIRTYCHECKOUT', 'yes')
    assert config.refuse_dirty_checkout is True


def test_unreadable_config_is_ignored(repo):
    repo.config_file.write_text('this is not ini\n')
    assert Config(repo.config_file).get('core', 'bare') is None


def test_sections_by_prefix(repo):
    config = get_config(repo)
    config.set('remote "origin"', 'url', '/a')
    config.set('remote "backup"', 'url', '/b')
    assert sorted(config.sections('remote "')) == ['remote "backup"', 'remote "origin"']
