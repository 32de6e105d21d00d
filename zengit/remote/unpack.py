"""Unpacking a received packfile into the object store."""

import logging
from typing import Dict, List, Optional, Tuple

from zengit.core.errors import CorruptObject, ProtocolError
from zengit.core.pack import (
    OBJ_OFS_DELTA,
    OBJ_REF_DELTA,
    TYPE_NAMES,
    apply_delta,
    inflate,
    parse_entry_header,
    parse_ofs_offset,
    parse_pack_header,
    verify_pack_checksum,
)
from zengit.remote.transport import CancelToken, check_cancelled

logger = logging.getLogger(__name__)


class PackUnpacker:
    """
    Writes every object of an in-memory pack into a repository.

    Full objects are stored as they are read. Delta entries are buffered
    and resolved in passes until none are left; a pass that resolves
    nothing means some base is missing.
    """

    def __init__(self, repo, cancel_token: Optional[CancelToken] = None):
        self.repo = repo
        self.cancel_token = cancel_token
        self._by_offset: Dict[int, Tuple[str, bytes]] = {}
        self._offset_of: Dict[str, int] = {}

    def _store(self, offset: int, kind: str, data: bytes) -> str:
        oid = self.repo.put(data, kind)
        self._by_offset[offset] = (kind, data)
        self._offset_of[oid] = offset
        return oid

    def _base_by_oid(self, oid: str) -> Optional[Tuple[str, bytes]]:
        offset = self._offset_of.get(oid)
        if offset is not None:
            return self._by_offset[offset]
        if self.repo.exists(oid):
            return self.repo.get(oid)
        return None

    def unpack(self, data: bytes) -> int:
        """
        Returns:
            Number of objects written

        Raises:
            ProtocolError: If the pack is malformed or a delta base is missing
        """
        try:
            return self._unpack(data)
        except CorruptObject as e:
            raise ProtocolError(f"Invalid pack: {e}") from e

    def _unpack(self, data: bytes) -> int:
        verify_pack_checksum(data)
        version, count = parse_pack_header(data)
        logger.debug("Unpacking pack v%d with %d objects", version, count)

        end = len(data) - 20
        pos = 12
        pending: List[Tuple[int, Optional[int], Optional[str], bytes]] = []

        for _ in range(count):
            check_cancelled(self.cancel_token)
            if pos >= end:
                raise CorruptObject("Pack ends before its last entry")
            entry_offset = pos
            obj_type, size, pos = parse_entry_header(data, pos)
            if obj_type in TYPE_NAMES:
                content, pos = inflate(data, pos, size)
                self._store(entry_offset, TYPE_NAMES[obj_type], content)
            elif obj_type == OBJ_OFS_DELTA:
                relative, pos = parse_ofs_offset(data, pos)
                if relative > entry_offset:
                    raise CorruptObject(f"Delta base offset before pack start at {entry_offset}")
                delta, pos = inflate(data, pos, size)
                pending.append((entry_offset, entry_offset - relative, None, delta))
            elif obj_type == OBJ_REF_DELTA:
                base_oid = data[pos:pos + 20].hex()
                delta, pos = inflate(data, pos + 20, size)
                pending.append((entry_offset, None, base_oid, delta))
            else:
                raise CorruptObject(f"Unknown pack entry type {obj_type} at {entry_offset}")

        if pos != end:
            raise CorruptObject(f"{end - pos} unexpected bytes after the last pack entry")

        while pending:
            check_cancelled(self.cancel_token)
            unresolved = []
            for offset, base_offset, base_oid, delta in pending:
                if base_offset is not None:
                    base = self._by_offset.get(base_offset)
                else:
                    base = self._base_by_oid(base_oid)
                if base is None:
                    unresolved.append((offset, base_offset, base_oid, delta))
                    continue
                kind, base_data = base
                self._store(offset, kind, apply_delta(base_data, delta))
            if len(unresolved) == len(pending):
                missing = unresolved[0][2] or f"offset {unresolved[0][1]}"
                raise ProtocolError(
                    f"{len(unresolved)} delta objects have no resolvable base (first: {missing})"
                )
            pending = unresolved

        logger.debug("Unpacked %d objects", len(self._by_offset))
        return len(self._by_offset)


def unpack_pack(repo, data: bytes, cancel_token: Optional[CancelToken] = None) -> int:
    return PackUnpacker(repo, cancel_token).unpack(data)
