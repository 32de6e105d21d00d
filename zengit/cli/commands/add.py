"""Add command - stage the working tree."""

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import info, success


@click.command('add')
@git_errors
def add_cmd():
    """
    Stage every change in the working tree.

    New and modified files are added, deleted files are removed from the
    index. Paths matched by .gitignore are skipped.

    Examples:
        zengit add
    """
    repo = open_repo()
    changes = repo.add_all()

    for path in changes['added']:
        click.echo(f"  {Fore.GREEN}added:      {path}{Style.RESET_ALL}")
    for path in changes['modified']:
        click.echo(f"  {Fore.YELLOW}modified:   {path}{Style.RESET_ALL}")
    for path in changes['removed']:
        click.echo(f"  {Fore.RED}removed:    {path}{Style.RESET_ALL}")

    total = sum(len(paths) for paths in changes.values())
    if total:
        click.echo(success(f"Staged {total} change(s)"))
    else:
        click.echo(info("Nothing to stage"))
