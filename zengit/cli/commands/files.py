"""Files command - list files with their last commit."""

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import format_timestamp, short, summary


@click.command('files')
@click.argument('directory', required=False)
@git_errors
def files_cmd(directory):
    """
    List working-tree files with the last commit that changed each.

    Examples:
        zengit files
        zengit files src
    """
    repo = open_repo()
    for meta in repo.list_files_with_metadata(directory):
        if meta.last_commit_oid is None:
            click.echo(f"{meta.path}  {Fore.RED}untracked{Style.RESET_ALL}")
            continue
        click.echo(
            f"{meta.path}  {Fore.YELLOW}{short(meta.last_commit_oid)}{Style.RESET_ALL} "
            f"{Fore.GREEN}+{meta.added_lines}{Style.RESET_ALL} "
            f"{Fore.RED}-{meta.deleted_lines}{Style.RESET_ALL} "
            f"{summary(meta.last_commit_message, 40)} "
            f"({meta.last_author.name}, {format_timestamp(meta.last_commit_time, meta.last_author.timezone)})"
        )
