"""Commit command - create a commit from staged changes."""

import re

import click

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import error, info, short, success, warning

AUTHOR_PATTERN = re.compile(r'^\s*(.+?)\s*<([^<>]*)>\s*$')


def get_author_info(repo):
    """
    Author name and email from the config, prompting when missing.

    Answers given at the prompt are saved to the repository config.
    """
    config = repo.repo.config
    name, email = config.get_user_identity()
    if name and email:
        return name, email

    click.echo(warning("Author information not configured"))
    click.echo(info("This will be saved to the repository config."))
    if not name:
        name = click.prompt("Your name").strip()
        config.set('user', 'name', name)
    if not email:
        email = click.prompt("Your email").strip()
        config.set('user', 'email', email)
    return name, email


@click.command('commit')
@click.option('-m', '--message', required=True, help='Commit message')
@click.option('--author', help='Author name and email (format: "Name <email>")')
@git_errors
def commit_cmd(message, author):
    """
    Record the staged snapshot as a new commit.

    Examples:
        zengit commit -m "Initial commit"
        zengit commit -m "Add feature" --author "Jane <jane@example.com>"
    """
    repo = open_repo()

    if author:
        match = AUTHOR_PATTERN.match(author)
        if not match:
            click.echo(error(f"Invalid author {author!r}, expected 'Name <email>'"))
            raise click.Abort()
        name, email = match.groups()
    else:
        name, email = get_author_info(repo)

    parent = repo.get_head_commit_hash()
    oid = repo.commit(message, name, email)
    branch = repo.get_current_branch()

    click.echo(success(f"[{branch or 'detached HEAD'} {short(oid)}] {message.splitlines()[0] if message else ''}"))
    click.echo(info(f"Author: {name} <{email}>"))
    click.echo(info(f"Parent: {short(parent)}" if parent else "(root commit)"))
