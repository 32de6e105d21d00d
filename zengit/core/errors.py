"""Error taxonomy for the zengit engine.

Every failure the engine surfaces derives from ``GitError``. Each class
carries a stable ``kind`` string so callers (a UI layer, the CLI) can map
errors to messages without string matching.
"""

from typing import Iterable, Optional


class GitError(Exception):
    """Base class for all engine errors."""

    kind = 'GitError'


class NotARepository(GitError):
    """No control directory was found at or above a path."""

    kind = 'NotARepository'

    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Not a git repository (or any parent): {self.path}")


class RepositoryExists(GitError):
    """A repository already exists where one was to be created."""

    kind = 'RepositoryExists'

    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Repository already exists at {self.path}")


class ObjectNotFound(GitError):
    kind = 'ObjectNotFound'

    def __init__(self, oid: str):
        self.oid = oid
        super().__init__(f"Object {oid} not found")


class IntegrityMismatch(GitError):
    """Stored bytes no longer hash to the object's id."""

    kind = 'IntegrityMismatch'

    def __init__(self, oid: str, actual: str):
        self.oid = oid
        self.actual = actual
        super().__init__(f"Object {oid} hashes to {actual}")


class CorruptObject(GitError):
    kind = 'CorruptObject'


class CorruptIndex(CorruptObject):
    kind = 'CorruptIndex'


class RefNotFound(GitError):
    kind = 'RefNotFound'

    def __init__(self, ref: str, detail: Optional[str] = None):
        self.ref = ref
        message = f"Reference not found: {ref}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RefAlreadyExists(GitError):
    kind = 'RefAlreadyExists'

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Reference already exists: {ref}")


class InvalidRefName(GitError):
    kind = 'InvalidRefName'

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid reference name: '{name}'")


class InvalidTagName(InvalidRefName):
    kind = 'InvalidTagName'


class LockContention(GitError):
    """Another mutating operation holds the repository lock."""

    kind = 'LockContention'

    def __init__(self, lock_path):
        self.lock_path = str(lock_path)
        super().__init__(
            f"Unable to lock {self.lock_path}: another operation is in progress"
        )


class DirtyWorkingTree(GitError):
    kind = 'DirtyWorkingTree'

    def __init__(self, paths: Iterable[str]):
        self.paths = sorted(paths)
        preview = ', '.join(self.paths[:5])
        if len(self.paths) > 5:
            preview += f", ... ({len(self.paths) - 5} more)"
        super().__init__(f"Uncommitted changes would be overwritten: {preview}")


class NothingToCommit(GitError):
    kind = 'NothingToCommit'


class PathNotFound(GitError):
    kind = 'PathNotFound'

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path not found in history or working tree: {path}")


class NetworkError(GitError):
    kind = 'NetworkError'


class ProtocolError(GitError):
    """Malformed server response or packfile."""

    kind = 'ProtocolError'


class OperationCancelled(GitError):
    kind = 'OperationCancelled'


class NonFastForward(GitError):
    """A push would drop commits the remote branch already has."""

    kind = 'NonFastForward'

    def __init__(self, ref: str, remote_oid: str, local_oid: str):
        self.ref = ref
        self.remote_oid = remote_oid
        self.local_oid = local_oid
        super().__init__(
            f"Rejected {ref}: {local_oid[:7]} does not contain the remote tip {remote_oid[:7]}"
        )
