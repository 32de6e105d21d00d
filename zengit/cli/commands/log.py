"""Log command - show commit history."""

from collections import defaultdict
from itertools import islice

import click
from colorama import Fore, Style

from zengit.cli.context import git_errors, open_repo
from zengit.cli.output import format_timestamp, info, short, summary
from zengit.core.refs import HEADS_PREFIX, REMOTES_PREFIX, TAGS_PREFIX
from zengit.operations.tags import TagManager


def ref_labels(repo):
    """Map commit ids to the short names of refs pointing at them."""
    labels = defaultdict(list)
    refs = repo.repo.refs
    for name, oid in refs.list_refs(HEADS_PREFIX):
        labels[oid].append(name[len(HEADS_PREFIX):])
    for name, oid in refs.list_refs(REMOTES_PREFIX):
        if not name.endswith('/HEAD'):
            labels[oid].append(name[len('refs/'):])
    tags = TagManager(repo.repo)
    for name, oid in refs.list_refs(TAGS_PREFIX):
        target, _ = tags.peel(oid)
        labels[target].append(f"tag: {name[len(TAGS_PREFIX):]}")
    return labels


def print_commit(commit, labels, oneline):
    decoration = ''
    if labels.get(commit.hash):
        decoration = f" {Fore.YELLOW}({', '.join(labels[commit.hash])}){Style.RESET_ALL}"
    if oneline:
        click.echo(f"{Fore.YELLOW}{short(commit.hash)}{Style.RESET_ALL}{decoration} {summary(commit.message, 72)}")
        return
    click.echo(f"{Fore.YELLOW}commit {commit.hash}{Style.RESET_ALL}{decoration}")
    if len(commit.parents) > 1:
        click.echo(f"Merge: {' '.join(short(p) for p in commit.parents)}")
    click.echo(f"Author: {commit.author.name} <{commit.author.email}>")
    click.echo(f"Date:   {format_timestamp(commit.author.timestamp, commit.author.timezone)}")
    click.echo()
    for line in commit.message.rstrip('\n').split('\n'):
        click.echo(f"    {line}")
    click.echo()


@click.command('log')
@click.argument('revision', required=False)
@click.option('-n', '--max-count', type=int, help='Limit the number of commits')
@click.option('--oneline', is_flag=True, help='One line per commit')
@click.option('-p', '--path', 'path', help='Show the history of one file with line counts')
@git_errors
def log_cmd(revision, max_count, oneline, path):
    """
    Show commit history, newest first.

    Examples:
        zengit log
        zengit log --oneline -n 5
        zengit log feature
        zengit log --path src/app.py
    """
    repo = open_repo()

    if path:
        entries = repo.get_file_history(path)
        if max_count is not None:
            entries = entries[:max_count]
        if not entries:
            click.echo(info(f"No commits touch {path}"))
        for entry in entries:
            click.echo(
                f"{Fore.YELLOW}{short(entry.commit_oid)}{Style.RESET_ALL} "
                f"{Fore.GREEN}+{entry.added_lines}{Style.RESET_ALL} "
                f"{Fore.RED}-{entry.deleted_lines}{Style.RESET_ALL} "
                f"{summary(entry.message, 60)} ({entry.author.name}, "
                f"{format_timestamp(entry.commit_time, entry.author.timezone)})"
            )
        return

    commits = repo.walk_history(revision)
    if max_count is not None:
        commits = islice(commits, max_count)

    labels = ref_labels(repo)
    shown = 0
    for commit in commits:
        print_commit(commit, labels, oneline)
        shown += 1
    if not shown:
        click.echo(info("No commits yet"))
