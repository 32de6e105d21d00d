"""Transport abstractions shared by the HTTP and local clone paths."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from zengit.core.errors import OperationCancelled
from zengit.core.refs import HEADS_PREFIX, TAGS_PREFIX


class CancelToken:
    """
    Cooperative cancellation flag for long transfers.

    Another thread calls ``cancel()``; the transfer calls ``check()`` at
    safe points and stops with OperationCancelled.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")


def check_cancelled(token: Optional[CancelToken]) -> None:
    if token is not None:
        token.check()


@dataclass
class RefAdvertisement:
    """Refs a remote offers, as discovered before fetching."""
    refs: Dict[str, str] = field(default_factory=dict)
    peeled: Dict[str, str] = field(default_factory=dict)
    capabilities: Set[str] = field(default_factory=set)
    head: Optional[str] = None
    head_target: Optional[str] = None

    @property
    def branches(self) -> Dict[str, str]:
        return {
            name[len(HEADS_PREFIX):]: oid
            for name, oid in self.refs.items() if name.startswith(HEADS_PREFIX)
        }

    @property
    def tags(self) -> Dict[str, str]:
        return {
            name[len(TAGS_PREFIX):]: oid
            for name, oid in self.refs.items() if name.startswith(TAGS_PREFIX)
        }

    def capability(self, name: str) -> Optional[str]:
        """Value of a ``name=value`` capability, or None."""
        prefix = name + '='
        for cap in self.capabilities:
            if cap.startswith(prefix):
                return cap[len(prefix):]
        return None

    def default_branch(self) -> Optional[str]:
        """
        Branch the remote HEAD names.

        Falls back to a branch at the same commit as HEAD (preferring main
        and master), then to the first branch.
        """
        branches = self.branches
        if self.head_target and self.head_target.startswith(HEADS_PREFIX):
            name = self.head_target[len(HEADS_PREFIX):]
            if name in branches:
                return name
        if self.head:
            candidates = sorted(name for name, oid in branches.items() if oid == self.head)
            for preferred in ('main', 'master'):
                if preferred in candidates:
                    return preferred
            if candidates:
                return candidates[0]
        return sorted(branches)[0] if branches else None

    def wants(self) -> List[str]:
        """Distinct object ids of all branches and tags."""
        seen = []
        for name, oid in sorted(self.refs.items()):
            if (name.startswith(HEADS_PREFIX) or name.startswith(TAGS_PREFIX)) and oid not in seen:
                seen.append(oid)
        return seen


def parse_url(url: str) -> Tuple[str, str]:
    """
    Parse remote URL to determine protocol and path.

    Returns:
        Tuple of (protocol, path)

    Examples:
        file:///path/to/repo -> ('file', '/path/to/repo')
        /path/to/repo -> ('file', '/path/to/repo')
        https://github.com/user/repo.git -> ('https', 'https://github.com/user/repo.git')
    """
    if url.startswith('file://'):
        return ('file', url[7:])
    if url.startswith('https://'):
        return ('https', url)
    if url.startswith('http://'):
        return ('http', url)
    if url.startswith('git://'):
        return ('git', url)
    if url.startswith('ssh://') or url.startswith('git@'):
        return ('ssh', url)
    return ('file', url)


class Transport(ABC):
    """A way of talking to a remote repository."""

    def __init__(self, url: str, cancel_token: Optional[CancelToken] = None):
        self.url = url
        self.cancel_token = cancel_token

    def check_cancelled(self) -> None:
        check_cancelled(self.cancel_token)

    @abstractmethod
    def discover_refs(self) -> RefAdvertisement:
        """List the refs the remote offers."""

    @abstractmethod
    def fetch(self, repo, wants: List[str]) -> int:
        """
        Copy every object reachable from ``wants`` into ``repo``.

        Returns:
            Number of objects received
        """

    def close(self) -> None:
        pass
