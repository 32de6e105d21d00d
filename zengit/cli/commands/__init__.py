"""CLI commands for zengit."""

from zengit.cli.commands.init import init_cmd
from zengit.cli.commands.clone import clone_cmd
from zengit.cli.commands.add import add_cmd
from zengit.cli.commands.commit import commit_cmd
from zengit.cli.commands.status import status_cmd
from zengit.cli.commands.branch import branch_cmd
from zengit.cli.commands.checkout import checkout_cmd
from zengit.cli.commands.tag import tag_cmd
from zengit.cli.commands.log import log_cmd
from zengit.cli.commands.files import files_cmd
from zengit.cli.commands.push import push_cmd

__all__ = ['init_cmd', 'clone_cmd', 'add_cmd', 'commit_cmd', 'status_cmd',
           'branch_cmd', 'checkout_cmd', 'tag_cmd', 'log_cmd', 'files_cmd', 'push_cmd']
