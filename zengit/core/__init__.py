"""Core functionality for zengit.

This module contains the core data structures:
- Git objects (Blob, Tree, Commit, Tag)
- Object store and pack reading
- Index/staging area
- Reference management
- Configuration management
- Locking and change events

For status, commit, checkout and history, see zengit.operations
For clone and the transport client, see zengit.remote
For ignore handling, see zengit.utils
"""

from zengit.core.objects import GitObject, Blob, Tree, TreeEntry, Commit, Tag, Signature
from zengit.core.repository import Repository
from zengit.core.hash import hash_object, hash_file, object_id
from zengit.core.index import Index, IndexEntry
from zengit.core.refs import RefManager
from zengit.core.config import Config, get_config
from zengit.core.events import EventHub

__all__ = [
    'GitObject',
    'Blob',
    'Tree',
    'TreeEntry',
    'Commit',
    'Tag',
    'Signature',
    'Repository',
    'Index',
    'IndexEntry',
    'RefManager',
    'Config',
    'get_config',
    'EventHub',
    'hash_object',
    'hash_file',
    'object_id',
]
