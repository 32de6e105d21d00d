"""Push command - update a local remote with local commits."""

import click

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import error, info, short, success
from zengit.core.errors import NonFastForward


@click.command('push')
@click.argument('remote', default='origin')
@click.argument('branch', required=False)
@click.option('--force', '-f', is_flag=True, help='Move the remote branch even if commits are lost')
@git_errors
def push_cmd(remote, branch, force):
    """
    Update a remote branch with local commits.

    REMOTE: Name of remote to push to (default: origin)
    BRANCH: Branch to push (default: current branch)

    Only remotes on this filesystem (a path or file:// URL) are supported.

    Examples:
        zengit push
        zengit push origin feature
    """
    repo = open_repo()
    try:
        result = repo.push(remote, branch, force=force)
    except NonFastForward:
        click.echo(error("Push rejected: not a fast-forward"))
        click.echo(info("Bring in the remote changes first, or use --force"))
        raise click.Abort()

    if result.up_to_date:
        click.echo(info("Everything up-to-date"))
        return
    click.echo(success(f"Pushed '{result.branch}' to '{result.remote}'"))
    click.echo(info(f"{short(result.old_oid) if result.old_oid else '(new branch)'} -> {short(result.new_oid)}"))
