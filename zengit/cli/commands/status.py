"""Status command - show working tree status."""

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import info, short, success


@click.command('status')
@click.option('--ignored', is_flag=True, help='Show ignored files as well')
@git_errors
def status_cmd(ignored):
    """
    Show the working tree status.

    Compares the working tree against the index and HEAD and lists new,
    modified and deleted files.

    Examples:
        zengit status
        zengit status --ignored
    """
    repo = open_repo()

    branch = repo.get_current_branch()
    if branch is None:
        click.echo(f"{Fore.YELLOW}HEAD detached at {short(repo.get_head_commit_hash())}{Style.RESET_ALL}")
    else:
        click.echo(f"On branch {Fore.CYAN}{branch}{Style.RESET_ALL}")
    click.echo()

    rows = repo.get_file_status(include_ignored=ignored)
    if not rows:
        click.echo(success("Nothing to commit, working tree clean"))
        return

    for row in rows:
        if row.is_ignored:
            click.echo(f"  {Style.DIM}ignored:    {row.path}{Style.RESET_ALL}")
        elif row.is_new:
            click.echo(f"  {Fore.GREEN}new file:   {row.path}{Style.RESET_ALL}")
        elif row.is_deleted:
            click.echo(f"  {Fore.RED}deleted:    {row.path}{Style.RESET_ALL}")
        elif row.is_modified:
            click.echo(f"  {Fore.YELLOW}modified:   {row.path}{Style.RESET_ALL}")
    click.echo()
    click.echo(info("Use \"zengit add\" to stage and \"zengit commit\" to record them"))
