"""Tag command - list, create and delete tags."""

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import format_timestamp, info, short, success, summary


@click.command('tag')
@click.argument('tag_name', required=False)
@click.argument('target', required=False)
@click.option('-m', '--message', help='Create an annotated tag with this message')
@click.option('-d', '--delete', is_flag=True, help='Delete the tag')
@click.option('-n', 'show_messages', is_flag=True, help='Show tag messages when listing')
@git_errors
def tag_cmd(tag_name, target, message, delete, show_messages):
    """
    Create, list, or delete tags.

    Examples:
        zengit tag                         # List tags
        zengit tag v1.0                    # Lightweight tag at HEAD
        zengit tag v1.0 -m "Release 1.0"   # Annotated tag at HEAD
        zengit tag v0.9 HEAD~3             # Tag an older commit
        zengit tag -d v1.0                 # Delete a tag
    """
    repo = open_repo()

    if tag_name is None:
        tags = repo.list_tags()
        if not tags:
            click.echo(info("No tags yet"))
        for tag in tags:
            line = f"{Fore.YELLOW}{tag.name}{Style.RESET_ALL}"
            if show_messages:
                line += f"  {short(tag.target_commit)}  {summary(tag.message) if tag.message else ''}"
                if tag.annotated:
                    line += f"  ({tag.tagger_name}, {format_timestamp(tag.tag_time)})"
            click.echo(line)
        return

    if delete:
        repo.delete_tag(tag_name)
        click.echo(success(f"Deleted tag '{tag_name}'"))
        return

    oid = repo.create_tag(tag_name, message=message, target=target)
    kind = 'annotated tag' if message else 'tag'
    click.echo(success(f"Created {kind} '{tag_name}' ({short(oid)})"))
