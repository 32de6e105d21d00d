"""Initialize a new repository."""

from pathlib import Path

import click

from zengit.api import init_repository
from zengit.cli.context import git_errors
from zengit.cli.output import info, success
from zengit.core.repository import DEFAULT_BRANCH


@click.command('init')
@click.argument('path', default='.')
@click.option('-b', '--initial-branch', default=DEFAULT_BRANCH, show_default=True,
              help='Name of the initial branch')
@git_errors
def init_cmd(path, initial_branch):
    """
    Initialize a new repository.

    Creates a .git directory that stock Git can read as well.

    Examples:
        zengit init                 # Initialize in current directory
        zengit init my-project      # Initialize in my-project directory
    """
    repo_path = Path(path).resolve()
    if not repo_path.exists():
        click.echo(info(f"Created directory {repo_path}"))

    repo = init_repository(str(repo_path), initial_branch=initial_branch)
    click.echo(success(f"Initialized empty repository in {repo.repo.git_dir}"))
    click.echo(info("You can now start tracking files with:"))
    click.echo(info("  zengit add"))
    click.echo(info("  zengit commit -m 'message'"))
