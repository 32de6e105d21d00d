"""Remote configuration for zengit repositories."""

import logging
from typing import Dict, Optional

from zengit.core.errors import NetworkError
from zengit.remote.http import SmartHttpTransport
from zengit.remote.local import LocalTransport
from zengit.remote.transport import CancelToken, Transport, parse_url

logger = logging.getLogger(__name__)

REMOTE_SECTION_PREFIX = 'remote "'


def remote_section(name: str) -> str:
    return f'remote "{name}"'


class RemoteManager:
    """
    Manages the ``[remote "<name>"]`` sections of a repository config.

    Supports local filesystem remotes and smart HTTP(S) remotes.
    """

    def __init__(self, repo):
        self.repo = repo

    def add_remote(self, name: str, url: str) -> None:
        """
        Add a remote repository.

        Args:
            name: Remote name (e.g., 'origin')
            url: Remote URL (a local path, file:// or http(s)://)
        """
        section = remote_section(name)
        self.repo.config.set(section, 'url', url)
        self.repo.config.set(section, 'fetch', f'+refs/heads/*:refs/remotes/{name}/*')
        logger.debug("Added remote %s -> %s", name, url)

    def list_remotes(self) -> Dict[str, str]:
        """
        List all configured remotes.

        Returns:
            Dict mapping remote names to URLs
        """
        remotes = {}
        for section, values in self.repo.config.sections(REMOTE_SECTION_PREFIX).items():
            if section.endswith('"') and 'url' in values:
                remotes[section[len(REMOTE_SECTION_PREFIX):-1]] = values['url']
        return remotes

    def get_remote_url(self, name: str = 'origin') -> Optional[str]:
        return self.repo.config.get(remote_section(name), 'url')

    def remove_remote(self, name: str) -> bool:
        section = remote_section(name)
        removed = self.repo.config.unset(section, 'url')
        self.repo.config.unset(section, 'fetch')
        return removed

    def open_transport(self, url: str, cancel_token: Optional[CancelToken] = None,
                       session=None) -> Transport:
        """
        Pick a transport for ``url``.

        Raises:
            NetworkError: If the protocol is not supported
        """
        protocol, path = parse_url(url)
        if protocol == 'file':
            return LocalTransport(path, url=url, cancel_token=cancel_token)
        if protocol in ('http', 'https'):
            return SmartHttpTransport(
                url, session=session, timeout=self.repo.config.transfer_timeout,
                cancel_token=cancel_token,
            )
        raise NetworkError(
            f"Protocol '{protocol}' is not supported; use a local path or an http(s) URL"
        )
