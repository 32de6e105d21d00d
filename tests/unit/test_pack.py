"""Unit tests for packfile decoding, deltas and unpacking."""

import zlib

import pytest

from zengit.core.errors import CorruptObject, OperationCancelled, ProtocolError
from zengit.core.pack import (
    apply_delta,
    inflate,
    parse_entry_header,
    parse_ofs_offset,
    parse_pack_header,
    verify_pack_checksum,
)
from zengit.remote.transport import CancelToken
from zengit.remote.unpack import unpack_pack

BASE = b'alpha\nbeta\ngamma\ndelta\n'


def test_apply_delta_copy_and_insert(packs):
    delta = packs.make_delta(BASE, 11, b'GAMMA\n')
    assert apply_delta(BASE, delta) == b'alpha\nbeta\nGAMMA\n'


def test_apply_delta_insert_only(packs):
    delta = packs.make_delta(BASE, 0, b'fresh content\n')
    assert apply_delta(BASE, delta) == b'fresh content\n'


def test_apply_delta_rejects_wrong_base_size(packs):
    delta = packs.make_delta(BASE, 4, b'x')
    with pytest.raises(CorruptObject):
        apply_delta(BASE + b'extra', delta)


def test_apply_delta_rejects_copy_past_base():
    # base size 3, result size 10, copy 10 bytes from offset 0
    delta = bytes([3, 10, 0x80 | 0x10, 10])
    with pytest.raises(CorruptObject):
        apply_delta(b'abc', delta)


def test_apply_delta_rejects_reserved_opcode():
    with pytest.raises(CorruptObject):
        apply_delta(b'abc', bytes([3, 1, 0]))


def test_entry_header_roundtrip(packs):
    for obj_type, size in [(3, 0), (3, 15), (1, 16), (2, 1000), (7, 123456)]:
        header = packs.entry_header(obj_type, size)
        assert parse_entry_header(header, 0) == (obj_type, size, len(header))


def test_ofs_offset_roundtrip(packs):
    for offset in [1, 127, 128, 16511, 16512, 2 ** 21]:
        encoded = packs.encode_ofs(offset)
        assert parse_ofs_offset(encoded, 0) == (offset, len(encoded))


def test_truncated_entry_header():
    with pytest.raises(CorruptObject):
        parse_entry_header(b'\x95', 0)


def test_inflate_reports_end_of_stream():
    stream = zlib.compress(b'payload') + b'TRAILER'
    data, pos = inflate(stream, 0, 7)
    assert data == b'payload'
    assert stream[pos:] == b'TRAILER'


def test_inflate_size_mismatch():
    with pytest.raises(CorruptObject):
        inflate(zlib.compress(b'payload'), 0, 3)


def test_pack_header_and_checksum(packs):
    pack, _ = packs.build_pack([('blob', b'one')])
    assert parse_pack_header(pack) == (2, 1)
    verify_pack_checksum(pack)

    with pytest.raises(CorruptObject):
        parse_pack_header(b'JUNK' + pack[4:])
    with pytest.raises(CorruptObject):
        verify_pack_checksum(pack[:-1] + bytes([pack[-1] ^ 0xFF]))


def test_unpack_full_objects(repo, packs):
    pack, _ = packs.build_pack([('blob', b'one\n'), ('blob', b'two\n')])
    assert unpack_pack(repo, pack) == 2
    assert repo.get(packs.object_id('blob', b'one\n')) == ('blob', b'one\n')
    assert repo.get(packs.object_id('blob', b'two\n')) == ('blob', b'two\n')


def test_unpack_resolves_ofs_delta_chain(repo, packs):
    second = BASE[:11] + b'second\n'
    third = second[:6] + b'third\n'
    pack, _ = packs.build_pack([
        ('blob', BASE),
        ('ofs', 0, packs.make_delta(BASE, 11, b'second\n')),
        ('ofs', 1, packs.make_delta(second, 6, b'third\n')),
    ])
    assert unpack_pack(repo, pack) == 3
    assert repo.get(packs.object_id('blob', second)) == ('blob', second)
    assert repo.get(packs.object_id('blob', third)) == ('blob', third)


def test_unpack_ref_delta_with_base_later_in_pack(repo, packs):
    base_oid = packs.object_id('blob', BASE)
    target = BASE[:6] + b'omega\n'
    pack, _ = packs.build_pack([
        ('ref', base_oid, packs.make_delta(BASE, 6, b'omega\n')),
        ('blob', BASE),
    ])
    assert unpack_pack(repo, pack) == 2
    assert repo.get(packs.object_id('blob', target)) == ('blob', target)


def test_unpack_ref_delta_against_existing_object(repo, packs):
    base_oid = repo.put(BASE, 'blob')
    target = BASE + b'epsilon\n'
    pack, _ = packs.build_pack([
        ('ref', base_oid, packs.make_delta(BASE, len(BASE), b'epsilon\n')),
    ])
    unpack_pack(repo, pack)
    assert repo.get(packs.object_id('blob', target)) == ('blob', target)


def test_unpack_missing_base(repo, packs):
    pack, _ = packs.build_pack([
        ('ref', 'ab' * 20, packs.make_delta(BASE, 4, b'x')),
    ])
    with pytest.raises(ProtocolError):
        unpack_pack(repo, pack)


def test_unpack_bad_checksum(repo, packs):
    pack, _ = packs.build_pack([('blob', b'one\n')])
    with pytest.raises(ProtocolError):
        unpack_pack(repo, pack[:-20] + b'\0' * 20)


def test_unpack_truncated_pack(repo, packs):
    pack, _ = packs.build_pack([('blob', b'one\n'), ('blob', b'two\n')])
    with pytest.raises(ProtocolError):
        unpack_pack(repo, pack[:12] + pack[-20:])


def test_unpack_honours_cancellation(repo, packs):
    pack, _ = packs.build_pack([('blob', b'one\n')])
    token = CancelToken()
    token.cancel()
    with pytest.raises(OperationCancelled):
        unpack_pack(repo, pack, cancel_token=token)
    assert not repo.exists(packs.object_id('blob', b'one\n'))
