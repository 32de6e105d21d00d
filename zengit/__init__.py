"""zengit - a Git version-control engine implemented in Python."""

import logging

__version__ = '0.1.0'

from zengit.core.errors import GitError
from zengit.core.repository import Repository
from zengit.core.objects import GitObject, Blob, Tree, Commit, Tag, Signature

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'GitError',
    'Repository',
    'GitObject',
    'Blob',
    'Tree',
    'Commit',
    'Tag',
    'Signature',
]
