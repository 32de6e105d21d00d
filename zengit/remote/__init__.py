"""Remote module for cloning Git repositories.

This module handles all remote-related functionality:
- Remote management (add, remove, list)
- Transports (local filesystem, smart HTTP)
- pkt-line framing and pack unpacking
- Clone operations
"""

from zengit.remote.transport import CancelToken, RefAdvertisement, Transport
from zengit.remote.remote import RemoteManager
from zengit.remote.http import SmartHttpTransport
from zengit.remote.local import LocalTransport
from zengit.remote.clone import clone_repository

__all__ = [
    'CancelToken',
    'RefAdvertisement',
    'Transport',
    'RemoteManager',
    'SmartHttpTransport',
    'LocalTransport',
    'clone_repository',
]
