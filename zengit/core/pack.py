"""Packfile format: entry headers, delta application and on-disk packs.

A pack is ``PACK`` + version + object count, followed by entries and a
SHA-1 trailer. Each entry starts with a variable-length type/size header;
delta entries are followed either by a negative offset to their base
(OFS_DELTA) or by the base object's 20-byte id (REF_DELTA), then by the
zlib-compressed payload.
"""

import bisect
import hashlib
import logging
import mmap
import struct
import zlib
from collections import OrderedDict
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .errors import CorruptObject

logger = logging.getLogger(__name__)

OBJ_COMMIT = 1
OBJ_TREE = 2
OBJ_BLOB = 3
OBJ_TAG = 4
OBJ_OFS_DELTA = 6
OBJ_REF_DELTA = 7

TYPE_NAMES = {
    OBJ_COMMIT: 'commit',
    OBJ_TREE: 'tree',
    OBJ_BLOB: 'blob',
    OBJ_TAG: 'tag',
}

PACK_SIGNATURE = b'PACK'
IDX_SIGNATURE = b'\xfftOc'

_INFLATE_STEP = 16384


def parse_pack_header(data) -> Tuple[int, int]:
    """
    Parse the 12-byte pack header.

    Returns:
        Tuple of (version, object count)

    Raises:
        CorruptObject: If the signature or version is wrong
    """
    if len(data) < 12 or bytes(data[:4]) != PACK_SIGNATURE:
        raise CorruptObject("Missing PACK signature")
    version, count = struct.unpack('>II', bytes(data[4:12]))
    if version not in (2, 3):
        raise CorruptObject(f"Unsupported pack version {version}")
    return version, count


def verify_pack_checksum(data) -> None:
    """Check the trailing SHA-1 of a complete pack."""
    if len(data) < 32:
        raise CorruptObject("Pack is truncated")
    expected = bytes(data[-20:])
    actual = hashlib.sha1(data[:-20]).digest()
    if actual != expected:
        raise CorruptObject(
            f"Pack checksum mismatch: expected {expected.hex()}, got {actual.hex()}"
        )


def parse_entry_header(data, pos: int) -> Tuple[int, int, int]:
    """
    Decode an entry's type and inflated size.

    Returns:
        Tuple of (type, size, position after header)
    """
    try:
        c = data[pos]
        pos += 1
        obj_type = (c >> 4) & 7
        size = c & 0x0F
        shift = 4
        while c & 0x80:
            c = data[pos]
            pos += 1
            size |= (c & 0x7F) << shift
            shift += 7
    except IndexError:
        raise CorruptObject("Truncated pack entry header") from None
    return obj_type, size, pos


def parse_ofs_offset(data, pos: int) -> Tuple[int, int]:
    """Decode the relative base offset of an OFS_DELTA entry."""
    try:
        c = data[pos]
        pos += 1
        offset = c & 0x7F
        while c & 0x80:
            c = data[pos]
            pos += 1
            offset = ((offset + 1) << 7) | (c & 0x7F)
    except IndexError:
        raise CorruptObject("Truncated delta base offset") from None
    return offset, pos


def inflate(data, pos: int, size: int) -> Tuple[bytes, int]:
    """
    Decompress one zlib stream starting at ``pos``.

    Args:
        data: Buffer holding the stream (bytes, memoryview or mmap)
        pos: Start of the compressed stream
        size: Expected inflated size

    Returns:
        Tuple of (inflated bytes, position after the stream)

    Raises:
        CorruptObject: On decompression failure, truncation or size mismatch
    """
    decompressor = zlib.decompressobj()
    chunks = []
    step = max(_INFLATE_STEP, size + 64)
    end = len(data)
    try:
        while not decompressor.eof:
            if pos >= end:
                raise CorruptObject("Truncated compressed object data")
            chunk = data[pos:pos + step]
            chunks.append(decompressor.decompress(chunk))
            if decompressor.eof:
                pos += len(chunk) - len(decompressor.unused_data)
            else:
                pos += len(chunk)
    except zlib.error as e:
        raise CorruptObject(f"Failed to decompress object: {e}") from e
    result = b''.join(chunks)
    if len(result) != size:
        raise CorruptObject(f"Inflated size mismatch: expected {size}, got {len(result)}")
    return result, pos


def _read_varint(delta: bytes, pos: int) -> Tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(delta):
            raise CorruptObject("Truncated delta size")
        c = delta[pos]
        pos += 1
        value |= (c & 0x7F) << shift
        shift += 7
        if not c & 0x80:
            return value, pos


def apply_delta(base: bytes, delta: bytes) -> bytes:
    """
    Rebuild an object from its base and a delta.

    The delta starts with the base and result sizes (little-endian base-128
    varints), followed by instructions: a set high bit means "copy a range
    of the base" with offset/size bytes selected by the low 7 bits; any other
    non-zero byte means "insert that many literal bytes".

    Raises:
        CorruptObject: On size mismatches or malformed instructions
    """
    source_size, pos = _read_varint(delta, 0)
    target_size, pos = _read_varint(delta, pos)
    if source_size != len(base):
        raise CorruptObject(
            f"Delta base size mismatch: expected {source_size}, got {len(base)}"
        )

    out = bytearray()
    length = len(delta)
    while pos < length:
        cmd = delta[pos]
        pos += 1
        if cmd & 0x80:
            offset = 0
            size = 0
            for i in range(4):
                if cmd & (1 << i):
                    offset |= delta[pos] << (8 * i)
                    pos += 1
            for i in range(3):
                if cmd & (0x10 << i):
                    size |= delta[pos] << (8 * i)
                    pos += 1
            if size == 0:
                size = 0x10000
            if offset + size > len(base):
                raise CorruptObject("Delta copy exceeds base object")
            out += base[offset:offset + size]
        elif cmd:
            if pos + cmd > length:
                raise CorruptObject("Delta insert exceeds delta data")
            out += delta[pos:pos + cmd]
            pos += cmd
        else:
            raise CorruptObject("Reserved delta opcode 0")

    if len(out) != target_size:
        raise CorruptObject(
            f"Delta result size mismatch: expected {target_size}, got {len(out)}"
        )
    return bytes(out)


class PackIndex:
    """
    Reader for ``.idx`` files (version 1 and 2).

    Maps object ids to offsets in the companion ``.pack`` file.
    """

    def __init__(self, path):
        self.path = Path(path)
        data = self.path.read_bytes()
        self._names: List[bytes] = []
        self._offsets: List[int] = []

        if data[:4] == IDX_SIGNATURE:
            version = struct.unpack('>I', data[4:8])[0]
            if version != 2:
                raise CorruptObject(f"Unsupported pack index version {version}")
            self._load_v2(data)
        else:
            self._load_v1(data)

    def _load_v1(self, data: bytes) -> None:
        count = struct.unpack('>I', data[1020:1024])[0]
        pos = 1024
        entries = []
        for _ in range(count):
            offset = struct.unpack('>I', data[pos:pos + 4])[0]
            entries.append((data[pos + 4:pos + 24], offset))
            pos += 24
        self._names = [name for name, _ in entries]
        self._offsets = [offset for _, offset in entries]

    def _load_v2(self, data: bytes) -> None:
        count = struct.unpack('>I', data[8 + 255 * 4:8 + 256 * 4])[0]
        names_start = 8 + 256 * 4
        crc_start = names_start + 20 * count
        offsets_start = crc_start + 4 * count
        large_start = offsets_start + 4 * count

        self._names = [
            data[names_start + 20 * i:names_start + 20 * (i + 1)] for i in range(count)
        ]
        offsets = []
        for i in range(count):
            raw = struct.unpack('>I', data[offsets_start + 4 * i:offsets_start + 4 * (i + 1)])[0]
            if raw & 0x80000000:
                index = raw & 0x7FFFFFFF
                raw = struct.unpack('>Q', data[large_start + 8 * index:large_start + 8 * (index + 1)])[0]
            offsets.append(raw)
        self._offsets = offsets

    def find(self, oid: str) -> Optional[int]:
        """Return the pack offset of an object, or None."""
        key = bytes.fromhex(oid)
        i = bisect.bisect_left(self._names, key)
        if i < len(self._names) and self._names[i] == key:
            return self._offsets[i]
        return None

    def __len__(self) -> int:
        return len(self._names)


class PackFile:
    """
    Random access to objects stored in an on-disk pack.

    Args:
        pack_path: Path to the ``.pack`` file (the ``.idx`` sits beside it)
        resolve_external: Callback returning (kind, data) for REF_DELTA bases
                          that live outside this pack
    """

    CACHE_SIZE = 64

    def __init__(self, pack_path, resolve_external: Optional[Callable[[str], Tuple[str, bytes]]] = None):
        self.pack_path = Path(pack_path)
        self.index = PackIndex(self.pack_path.with_suffix('.idx'))
        self._resolve_external = resolve_external
        self._file = open(self.pack_path, 'rb')
        self._data = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
        parse_pack_header(self._data)
        self._cache: 'OrderedDict[int, Tuple[str, bytes]]' = OrderedDict()

    def close(self) -> None:
        self._data.close()
        self._file.close()

    def contains(self, oid: str) -> bool:
        return self.index.find(oid) is not None

    def get(self, oid: str) -> Optional[Tuple[str, bytes]]:
        """Return (kind, data) for an object in this pack, or None."""
        offset = self.index.find(oid)
        if offset is None:
            return None
        return self._read_at(offset)

    def _read_at(self, offset: int) -> Tuple[str, bytes]:
        # Walk down the delta chain to a full object, then apply deltas upward.
        chain: List[bytes] = []
        visited: List[int] = []
        while True:
            if offset in self._cache:
                kind, data = self._cache[offset]
                break
            obj_type, size, pos = parse_entry_header(self._data, offset)
            visited.append(offset)
            if obj_type in TYPE_NAMES:
                data, _ = inflate(self._data, pos, size)
                kind = TYPE_NAMES[obj_type]
                self._remember(offset, kind, data)
                visited.pop()
                break
            if obj_type == OBJ_OFS_DELTA:
                relative, pos = parse_ofs_offset(self._data, pos)
                delta, _ = inflate(self._data, pos, size)
                chain.append(delta)
                offset -= relative
            elif obj_type == OBJ_REF_DELTA:
                base_oid = bytes(self._data[pos:pos + 20]).hex()
                delta, _ = inflate(self._data, pos + 20, size)
                chain.append(delta)
                base_offset = self.index.find(base_oid)
                if base_offset is None:
                    if self._resolve_external is None:
                        raise CorruptObject(f"Missing delta base {base_oid}")
                    kind, data = self._resolve_external(base_oid)
                    break
                offset = base_offset
            else:
                raise CorruptObject(f"Unknown pack entry type {obj_type} at {offset}")

        for delta, entry_offset in zip(reversed(chain), reversed(visited)):
            data = apply_delta(data, delta)
            self._remember(entry_offset, kind, data)
        return kind, data

    def _remember(self, offset: int, kind: str, data: bytes) -> None:
        self._cache[offset] = (kind, data)
        self._cache.move_to_end(offset)
        while len(self._cache) > self.CACHE_SIZE:
            self._cache.popitem(last=False)
