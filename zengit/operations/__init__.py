"""Operations module for high-level zengit operations.

This module contains the business logic for:
- Diff computation (line statistics, tree diffs)
- Status computation
- Commit creation
- Checkout logic
- Tags
- History walking and file history mining
"""

from zengit.operations.diff import DiffEngine, DiffStat
from zengit.operations.status import StatusEngine, FileStatusEntry
from zengit.operations.commit import CommitEngine
from zengit.operations.checkout import CheckoutEngine
from zengit.operations.tags import TagManager, TagInfo
from zengit.operations.history import HistoryWalker, FileHistoryEntry, FileMetadata

__all__ = [
    'DiffEngine', 'DiffStat',
    'StatusEngine', 'FileStatusEntry',
    'CommitEngine',
    'CheckoutEngine',
    'TagManager', 'TagInfo',
    'HistoryWalker', 'FileHistoryEntry', 'FileMetadata',
]
