"""Branch command - list, create and delete branches."""

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import error, info, short, success, summary
from zengit.core.refs import REMOTES_PREFIX


@click.command('branch')
@click.option('-d', '--delete', 'delete_name', metavar='BRANCH', help='Delete a branch')
@click.option('-v', '--verbose', is_flag=True, help='Show commit hash and message')
@click.option('-r', '--remotes', is_flag=True, help='List remote-tracking branches')
@click.argument('branch_name', required=False)
@click.argument('start_point', required=False)
@git_errors
def branch_cmd(delete_name, verbose, remotes, branch_name, start_point):
    """
    List, create, or delete branches.

    Examples:
        zengit branch                     # List local branches
        zengit branch -v                  # List with last commits
        zengit branch feature             # Create branch at HEAD
        zengit branch hotfix HEAD~2       # Create branch at a revision
        zengit branch -d feature          # Delete branch
    """
    repo = open_repo()
    refs = repo.repo.refs

    if delete_name:
        try:
            repo.delete_branch(delete_name)
        except ValueError as e:
            click.echo(error(str(e)))
            raise click.Abort()
        click.echo(success(f"Deleted branch {delete_name}"))
        return

    if branch_name:
        oid = repo.create_branch(branch_name, start_point)
        click.echo(success(f"Created branch '{branch_name}' at {short(oid)}"))
        return

    if remotes:
        branches = [
            (name[len(REMOTES_PREFIX):], oid)
            for name, oid in refs.list_refs(REMOTES_PREFIX) if not name.endswith('/HEAD')
        ]
        current = None
    else:
        branches = refs.list_branches()
        current = repo.get_current_branch()

    if not branches:
        click.echo(info("No branches yet"))
        return

    for name, oid in branches:
        if name == current:
            line = f"* {Fore.GREEN}{name}{Style.RESET_ALL}"
        else:
            line = f"  {name}"
        if verbose:
            line += f"  {Fore.YELLOW}{short(oid)}{Style.RESET_ALL} {summary(repo.repo.read_object(oid).message)}"
        click.echo(line)
