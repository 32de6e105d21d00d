"""Reference management for zengit."""

import logging
import re
from typing import Dict, List, Optional, Tuple

from .errors import InvalidRefName, InvalidTagName, ObjectNotFound, RefAlreadyExists, RefNotFound
from .hash import is_oid
from .lock import atomic_write

logger = logging.getLogger(__name__)

SYMREF_PREFIX = 'ref: '
HEADS_PREFIX = 'refs/heads/'
TAGS_PREFIX = 'refs/tags/'
REMOTES_PREFIX = 'refs/remotes/'

MAX_SYMREF_DEPTH = 5

_INVALID_REF_CHARS = re.compile(r'[\x00-\x20\x7f~^:?*\[\\]')


def check_ref_format(name: str) -> bool:
    """
    Check a short ref name (branch or tag) against Git's naming rules.

    Args:
        name: Proposed name, e.g. 'feature/login' or 'v1.0'

    Returns:
        True if valid, False otherwise
    """
    if not name or name == '@':
        return False
    if name.startswith('/') or name.endswith('/') or '//' in name:
        return False
    if name.startswith('-') or name.endswith('.'):
        return False
    if '..' in name or '@{' in name:
        return False
    if _INVALID_REF_CHARS.search(name):
        return False
    for component in name.split('/'):
        if component.startswith('.') or component.endswith('.lock'):
            return False
    return True


def is_contained_ref(ref_name: str) -> bool:
    """True if a full ref name stays inside the control directory."""
    return all(part not in ('', '.', '..') for part in ref_name.split('/'))


class RefManager:
    """
    Manages Git references (branches, tags, HEAD).

    Handles:
    - Symbolic references (HEAD pointing to branch)
    - Direct references (detached HEAD)
    - Branch references (refs/heads/*)
    - Tag references (refs/tags/*)
    - Loose refs and the packed-refs file
    """

    def __init__(self, repo):
        """
        Initialize reference manager.

        Args:
            repo: Repository instance
        """
        self.repo = repo
        self.git_dir = repo.git_dir
        self.refs_dir = repo.refs_dir
        self.heads_dir = repo.heads_dir
        self.tags_dir = repo.tags_dir
        self.head_file = repo.head_file
        self.packed_refs_file = repo.packed_refs_file

    # -- raw access ---------------------------------------------------------

    def read_packed_refs(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Parse packed-refs.

        Returns:
            Tuple of ({ref name: oid}, {ref name: peeled oid})
        """
        refs: Dict[str, str] = {}
        peeled: Dict[str, str] = {}
        if not self.packed_refs_file.exists():
            return refs, peeled

        last = None
        for line in self.packed_refs_file.read_text().splitlines():
            if not line or line.startswith('#'):
                continue
            if line.startswith('^'):
                if last:
                    peeled[last] = line[1:].strip()
                continue
            oid, _, name = line.partition(' ')
            refs[name.strip()] = oid
            last = name.strip()
        return refs, peeled

    def _write_packed_refs(self, refs: Dict[str, str], peeled: Dict[str, str]) -> None:
        lines = ['# pack-refs with: peeled fully-peeled sorted']
        for name in sorted(refs):
            lines.append(f'{refs[name]} {name}')
            if name in peeled:
                lines.append(f'^{peeled[name]}')
        atomic_write(self.packed_refs_file, ('\n'.join(lines) + '\n').encode())

    def _ref_path(self, ref_name: str):
        if not is_contained_ref(ref_name):
            raise InvalidRefName(ref_name)
        return self.git_dir / ref_name

    def read_raw(self, ref_name: str) -> Optional[str]:
        """
        Read a ref's stored value without following symbolic refs.

        Args:
            ref_name: Full ref name ('HEAD', 'refs/heads/main', ...)

        Returns:
            'ref: <target>' for symbolic refs, an oid for direct refs, or None
        """
        if not is_contained_ref(ref_name):
            return None
        ref_path = self.git_dir / ref_name
        if ref_path.is_file():
            return ref_path.read_text().strip()
        if ref_name.startswith('refs/'):
            refs, _ = self.read_packed_refs()
            return refs.get(ref_name)
        return None

    def ref_exists(self, ref_name: str) -> bool:
        return self.read_raw(ref_name) is not None

    def resolve(self, ref_name: str) -> Optional[str]:
        """
        Resolve a full ref name to an oid, following symbolic refs.

        Returns:
            Object id or None if the ref (or its target) doesn't exist

        Raises:
            RefNotFound: If symbolic refs form a cycle
        """
        seen = []
        name = ref_name
        for _ in range(MAX_SYMREF_DEPTH + 1):
            value = self.read_raw(name)
            if value is None:
                return None
            if not value.startswith(SYMREF_PREFIX):
                return value
            seen.append(name)
            name = value[len(SYMREF_PREFIX):].strip()
            if name in seen:
                break
        raise RefNotFound(ref_name, "symbolic reference cycle")

    def expand(self, ref: str) -> Optional[str]:
        """
        Expand a short name into the full ref name that exists.

        Lookup order: exact, refs/<ref>, refs/tags/<ref>, refs/heads/<ref>,
        refs/remotes/<ref>.
        """
        for candidate in (ref, f'refs/{ref}', f'{TAGS_PREFIX}{ref}',
                          f'{HEADS_PREFIX}{ref}', f'{REMOTES_PREFIX}{ref}'):
            if candidate == 'HEAD' or candidate.startswith('refs/'):
                if self.ref_exists(candidate):
                    return candidate
        return None

    def read_ref(self, ref: str) -> Optional[str]:
        """
        Read a reference (full or short name) and return the oid it names.

        Args:
            ref: Reference name (e.g., 'refs/heads/main', 'HEAD', 'main')

        Returns:
            Object id or None if reference doesn't exist
        """
        full = self.expand(ref)
        if full is None:
            return None
        return self.resolve(full)

    def write_ref(self, ref_name: str, oid: str, create_only: bool = False) -> None:
        """
        Point a ref at an object.

        Args:
            ref_name: Full reference name (e.g., 'refs/heads/main')
            oid: Object id to point to
            create_only: Fail if the ref already exists

        Raises:
            InvalidRefName: If the name would leave the control directory
            RefAlreadyExists: If create_only and the ref exists
            ObjectNotFound: If the object is not in the store
        """
        if create_only and self.ref_exists(ref_name):
            raise RefAlreadyExists(ref_name)
        if not self.repo.exists(oid):
            raise ObjectNotFound(oid)
        atomic_write(self._ref_path(ref_name), (oid + '\n').encode())
        logger.debug("Updated %s to %s", ref_name, oid)

    def delete_ref(self, ref_name: str) -> None:
        """
        Delete a reference, loose and packed.

        Raises:
            InvalidRefName: If the name would leave the control directory
            RefNotFound: If the ref doesn't exist
        """
        found = False
        ref_path = self._ref_path(ref_name)
        if ref_path.is_file():
            ref_path.unlink()
            found = True
            self._prune_empty_dirs(ref_path.parent)

        refs, peeled = self.read_packed_refs()
        if ref_name in refs:
            del refs[ref_name]
            peeled.pop(ref_name, None)
            self._write_packed_refs(refs, peeled)
            found = True

        if not found:
            raise RefNotFound(ref_name)
        logger.debug("Deleted %s", ref_name)

    def _prune_empty_dirs(self, directory) -> None:
        while directory != self.refs_dir and self.refs_dir in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    def list_refs(self, prefix: str = 'refs/') -> List[Tuple[str, str]]:
        """
        List refs under a prefix, loose refs overriding packed ones.

        Returns:
            Sorted list of (full ref name, oid) tuples
        """
        refs, _ = self.read_packed_refs()
        result = {name: oid for name, oid in refs.items() if name.startswith(prefix)}

        base = self.git_dir / prefix
        if base.is_dir():
            for ref_file in base.rglob('*'):
                if not ref_file.is_file() or ref_file.name.endswith(('.lock', '.tmp')):
                    continue
                name = ref_file.relative_to(self.git_dir).as_posix()
                value = ref_file.read_text().strip()
                if value.startswith(SYMREF_PREFIX):
                    value = self.resolve(name)
                if value:
                    result[name] = value
        return sorted(result.items())

    # -- HEAD ---------------------------------------------------------------

    def head_target(self) -> Optional[str]:
        """Return the ref HEAD points at symbolically, or None if detached."""
        value = self.read_raw('HEAD')
        if value and value.startswith(SYMREF_PREFIX):
            return value[len(SYMREF_PREFIX):].strip()
        return None

    def resolve_head(self) -> Optional[str]:
        """
        Resolve HEAD to a commit hash.

        Returns:
            Commit hash or None if HEAD is unborn
        """
        return self.resolve('HEAD')

    def get_current_branch(self) -> Optional[str]:
        """
        Get the current branch name.

        Returns:
            Branch name or None if in detached HEAD state
        """
        target = self.head_target()
        if target and target.startswith(HEADS_PREFIX):
            return target[len(HEADS_PREFIX):]
        return None

    def is_detached_head(self) -> bool:
        value = self.read_raw('HEAD')
        return value is not None and not value.startswith(SYMREF_PREFIX)

    def set_head(self, target: str, symbolic: bool = True) -> None:
        """
        Set HEAD to point to a branch or commit.

        Args:
            target: Branch name (if symbolic) or commit hash (if direct)
            symbolic: If True, create symbolic reference; if False, direct reference
        """
        if symbolic:
            if not target.startswith('refs/'):
                target = f'{HEADS_PREFIX}{target}'
            atomic_write(self.head_file, f'{SYMREF_PREFIX}{target}\n'.encode())
        else:
            if not self.repo.exists(target):
                raise ObjectNotFound(target)
            atomic_write(self.head_file, (target + '\n').encode())
        logger.debug("HEAD now %s%s", '' if symbolic else 'detached at ', target)

    def update_head(self, oid: str) -> None:
        """Move whatever HEAD names (its branch, or HEAD itself) to ``oid``."""
        target = self.head_target()
        if target is not None:
            self.write_ref(target, oid)
        else:
            self.set_head(oid, symbolic=False)

    # -- branches and tags --------------------------------------------------

    def list_branches(self) -> List[Tuple[str, str]]:
        """
        List all local branches.

        Returns:
            List of (branch_name, commit_hash) tuples
        """
        return [(name[len(HEADS_PREFIX):], oid) for name, oid in self.list_refs(HEADS_PREFIX)]

    def list_tags(self) -> List[Tuple[str, str]]:
        """
        List all tags.

        Returns:
            List of (tag_name, oid) tuples; oid is the tag object for
            annotated tags
        """
        return [(name[len(TAGS_PREFIX):], oid) for name, oid in self.list_refs(TAGS_PREFIX)]

    def branch_ref(self, branch_name: str) -> str:
        """
        Full ref name of a branch.

        Raises:
            InvalidRefName: If the name is not a valid ref name
        """
        if not check_ref_format(branch_name):
            raise InvalidRefName(branch_name)
        return f'{HEADS_PREFIX}{branch_name}'

    def tag_ref(self, tag_name: str) -> str:
        """
        Full ref name of a tag.

        Raises:
            InvalidTagName: If the name is not a valid ref name
        """
        if not check_ref_format(tag_name):
            raise InvalidTagName(tag_name)
        return f'{TAGS_PREFIX}{tag_name}'

    def branch_exists(self, branch_name: str) -> bool:
        return check_ref_format(branch_name) and self.ref_exists(f'{HEADS_PREFIX}{branch_name}')

    def create_branch(self, branch_name: str, commit_hash: str) -> None:
        """
        Create a new branch.

        Raises:
            InvalidRefName: If the name is not a valid ref name
            RefAlreadyExists: If the branch exists
        """
        self.write_ref(self.branch_ref(branch_name), commit_hash, create_only=True)

    def delete_branch(self, branch_name: str) -> None:
        """
        Delete a branch other than the current one.

        Raises:
            InvalidRefName: If the name is not a valid ref name
            ValueError: If the branch is checked out
            RefNotFound: If the branch doesn't exist
        """
        ref_name = self.branch_ref(branch_name)
        if self.get_current_branch() == branch_name:
            raise ValueError(f"Cannot delete the checked out branch '{branch_name}'")
        self.delete_ref(ref_name)

    def tag_exists(self, tag_name: str) -> bool:
        return check_ref_format(tag_name) and self.ref_exists(f'{TAGS_PREFIX}{tag_name}')

    def create_tag(self, tag_name: str, oid: str) -> None:
        self.write_ref(self.tag_ref(tag_name), oid, create_only=True)

    def delete_tag(self, tag_name: str) -> None:
        self.delete_ref(self.tag_ref(tag_name))

    # -- revisions ----------------------------------------------------------

    def find_object_by_prefix(self, prefix: str) -> Optional[str]:
        """Find a unique loose object whose id starts with ``prefix``."""
        prefix = prefix.lower()
        directory = self.repo.objects_dir / prefix[:2]
        if len(prefix) < 4 or not directory.is_dir():
            return None
        matches = [
            prefix[:2] + f.name for f in directory.iterdir()
            if f.name.startswith(prefix[2:]) and len(f.name) == 38
        ]
        return matches[0] if len(matches) == 1 else None

    def resolve_reference(self, ref: str) -> Optional[str]:
        """
        Resolve any reference (branch, tag, HEAD, hash) to an object id.

        Args:
            ref: Reference string (e.g., 'HEAD', 'main', 'v1.0', commit hash)

        Returns:
            Object id or None if the reference can't be resolved
        """
        if is_oid(ref.lower()) and self.repo.exists(ref.lower()):
            return ref.lower()

        oid = self.read_ref(ref)
        if oid:
            return oid

        if re.fullmatch(r'[0-9a-fA-F]{4,39}', ref):
            return self.find_object_by_prefix(ref)
        return None
