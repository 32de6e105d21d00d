"""Shared helpers for CLI commands."""

import functools
import logging

import click

from zengit.api import GitRepo
from zengit.cli.output import error, info
from zengit.core.errors import DirtyWorkingTree, GitError, NotARepository

logger = logging.getLogger(__name__)


def open_repo(path: str = '.') -> GitRepo:
    try:
        return GitRepo(path)
    except NotARepository:
        click.echo(error("Not a git repository (or any of the parent directories)"))
        raise click.Abort()


def git_errors(func):
    """Report GitError as a CLI error instead of a traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DirtyWorkingTree as e:
            click.echo(error("Your local changes would be overwritten:"))
            for path in e.paths:
                click.echo(f"  {path}")
            click.echo(info("Commit your changes or use --force to discard them"))
            raise click.Abort()
        except GitError as e:
            logger.debug("%s failed", func.__name__, exc_info=True)
            click.echo(error(str(e)))
            raise click.Abort()
    return wrapper
