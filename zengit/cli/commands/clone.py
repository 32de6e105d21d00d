"""Clone command - copy a remote repository."""

from pathlib import Path

import click

from zengit.api import clone_repository
from zengit.cli.context import git_errors
from zengit.cli.output import info, success, warning


def default_directory(url: str) -> str:
    """Directory name git would pick for ``url``."""
    name = url.rstrip('/').split('/')[-1].split(':')[-1]
    if name.endswith('.git'):
        name = name[:-4]
    return name or 'repository'


@click.command('clone')
@click.argument('url')
@click.argument('directory', required=False)
@git_errors
def clone_cmd(url, directory):
    """
    Clone a repository into a new directory.

    URL may be a local path, a file:// URL or an http(s) smart HTTP URL.

    Examples:
        zengit clone https://github.com/user/repo.git
        zengit clone ../project project-copy
    """
    dest = Path(directory or default_directory(url)).resolve()
    click.echo(info(f"Cloning into '{dest.name}'..."))

    repo = clone_repository(url, str(dest))
    branch = repo.get_current_branch()
    if repo.get_head_commit_hash() is None:
        click.echo(warning("You appear to have cloned an empty repository."))
    click.echo(success(f"Cloned {url} into {dest}"))
    if branch:
        click.echo(info(f"Checked out branch '{branch}'"))
