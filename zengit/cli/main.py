"""Main CLI entry point for zengit."""

import logging

import click
from colorama import init

from zengit import __version__
from zengit.cli.output import BANNER
from zengit.cli.commands import (init_cmd, clone_cmd, add_cmd, commit_cmd, status_cmd,
                                 branch_cmd, checkout_cmd, tag_cmd, log_cmd, files_cmd, push_cmd)

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class ZengitGroup(click.Group):
    """Custom Group class to display banner before help."""

    def format_help(self, ctx, formatter):
        click.echo(BANNER)
        super().format_help(ctx, formatter)


@click.group(cls=ZengitGroup)
@click.version_option(version=__version__)
@click.option('-v', '--verbose', count=True, help='Log engine activity (-vv for debug)')
def cli(verbose):
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format='%(levelname)s %(name)s: %(message)s',
        )


cli.add_command(init_cmd)
cli.add_command(clone_cmd)
cli.add_command(add_cmd)
cli.add_command(commit_cmd)
cli.add_command(status_cmd)
cli.add_command(branch_cmd)
cli.add_command(checkout_cmd)
cli.add_command(tag_cmd)
cli.add_command(log_cmd)
cli.add_command(files_cmd)
cli.add_command(push_cmd)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
