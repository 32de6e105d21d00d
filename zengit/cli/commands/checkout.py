"""Checkout command - switch branches or check out commits."""

import click

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import info, short, success, warning


@click.command('checkout')
@click.argument('target')
@click.option('-b', 'new_branch', is_flag=True, help='Create the branch first')
@click.option('-f', '--force', is_flag=True, help='Discard local changes')
@git_errors
def checkout_cmd(target, new_branch, force):
    """
    Switch to a branch, or check out a tag or commit (detached HEAD).

    Examples:
        zengit checkout feature           # Switch to branch
        zengit checkout -b feature        # Create and switch
        zengit checkout v1.0              # Detached at a tag
        zengit checkout HEAD~1            # Detached at a commit
    """
    repo = open_repo()
    refs = repo.repo.refs

    if new_branch:
        repo.create_branch(target)

    if refs.branch_exists(target):
        counts = repo.checkout_branch(target, force=force)
        click.echo(success(f"Switched to branch '{target}'"))
    elif refs.tag_exists(target):
        counts = repo.checkout_tag(target, force=force)
        click.echo(warning(f"HEAD is now detached at tag {target} ({short(repo.get_head_commit_hash())})"))
    else:
        counts = repo.checkout_commit(target, force=force)
        click.echo(warning(f"HEAD is now detached at {short(repo.get_head_commit_hash())}"))

    click.echo(info(f"{counts['written']} written, {counts['removed']} removed, "
                    f"{counts['unchanged']} unchanged"))
