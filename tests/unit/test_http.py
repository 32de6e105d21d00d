"""Unit tests for the smart HTTP transport, against a fake requests session."""

import pytest
import requests

from zengit.core.errors import NetworkError, OperationCancelled, ProtocolError
from zengit.remote.http import (
    ADVERTISEMENT_TYPE,
    RESULT_TYPE,
    SmartHttpTransport,
    parse_advertisement,
)
from zengit.remote.pktline import FLUSH_PKT, PktLineReader, parse_pkt_lines, pkt_line
from zengit.remote.transport import CancelToken

URL = 'https://git.example.com/team/project.git'
COMMIT = '1' * 40
TAG = '2' * 40
OTHER = '3' * 40
CAPS = 'multi_ack side-band-64k ofs-delta symref=HEAD:refs/heads/main agent=git/2.43.0'


def advertisement(refs, caps=CAPS, head=COMMIT):
    body = pkt_line('# service=git-upload-pack\n') + FLUSH_PKT
    lines = [(head, 'HEAD')] + list(refs) if head else list(refs)
    for i, (oid, name) in enumerate(lines):
        if i == 0:
            body += pkt_line(f'{oid} {name}\0{caps}\n')
        else:
            body += pkt_line(f'{oid} {name}\n')
    return body + FLUSH_PKT


def upload_result(pack, progress=True):
    body = pkt_line('NAK\n')
    if progress:
        body += pkt_line(b'\x02Enumerating objects: 3, done.\n')
    for i in range(0, len(pack), 1000):
        body += pkt_line(b'\x01' + pack[i:i + 1000])
    return body + FLUSH_PKT


DEFAULT_REFS = [(COMMIT, 'refs/heads/main'), (OTHER, 'refs/heads/dev'),
                (TAG, 'refs/tags/v1'), (COMMIT, 'refs/tags/v1^{}')]


@pytest.fixture
def discovered(http):
    session = http.Session([http.Response(advertisement(DEFAULT_REFS), ADVERTISEMENT_TYPE)])
    transport = SmartHttpTransport(URL + '/', session=session, timeout=5)
    return transport, session


def test_discover_refs(discovered):
    """Test ref discovery parses refs, peeled tags, HEAD and capabilities."""
    transport, session = discovered
    adv = transport.discover_refs()

    assert adv.head == COMMIT
    assert adv.head_target == 'refs/heads/main'
    assert adv.branches == {'main': COMMIT, 'dev': OTHER}
    assert adv.tags == {'v1': TAG}
    assert adv.peeled == {'refs/tags/v1': COMMIT}
    assert 'side-band-64k' in adv.capabilities
    assert adv.default_branch() == 'main'
    assert adv.wants() == [OTHER, COMMIT, TAG]

    [call] = session.requests
    assert call.method == 'GET'
    assert call.url == URL + '/info/refs'
    assert call.params == {'service': 'git-upload-pack'}
    assert call.timeout == 5
    assert session.headers['User-Agent'].startswith('zengit/')


def test_empty_repository_advertisement(http):
    zero = '0' * 40
    body = pkt_line('# service=git-upload-pack\n') + FLUSH_PKT
    body += pkt_line(f'{zero} capabilities^{{}}\0side-band-64k symref=HEAD:refs/heads/trunk\n')
    body += FLUSH_PKT
    session = http.Session([http.Response(body, ADVERTISEMENT_TYPE)])
    adv = SmartHttpTransport(URL, session=session).discover_refs()
    assert adv.refs == {}
    assert adv.head is None
    assert adv.head_target == 'refs/heads/trunk'
    assert adv.default_branch() is None
    assert adv.wants() == []


def test_default_branch_without_symref():
    reader = PktLineReader([
        pkt_line(f'{OTHER} HEAD\0side-band-64k\n')
        + pkt_line(f'{COMMIT} refs/heads/aaa\n')
        + pkt_line(f'{OTHER} refs/heads/master\n')
        + pkt_line(f'{OTHER} refs/heads/zzz\n')
        + FLUSH_PKT
    ])
    adv = parse_advertisement(reader)
    assert adv.head_target is None
    assert adv.default_branch() == 'master'


def test_version_line_is_accepted_and_v2_rejected():
    line = pkt_line(f'{COMMIT} refs/heads/main\0side-band-64k\n') + FLUSH_PKT
    adv = parse_advertisement(PktLineReader([pkt_line('version 1\n') + line]))
    assert adv.branches == {'main': COMMIT}
    with pytest.raises(ProtocolError):
        parse_advertisement(PktLineReader([pkt_line('version 2\n') + line]))


def test_dumb_server_is_rejected(http):
    session = http.Session([http.Response(b'ref: refs/heads/main\n', 'text/plain')])
    with pytest.raises(ProtocolError):
        SmartHttpTransport(URL, session=session).discover_refs()


def test_bad_service_banner(http):
    body = pkt_line('# service=git-receive-pack\n') + FLUSH_PKT + FLUSH_PKT
    session = http.Session([http.Response(body, ADVERTISEMENT_TYPE)])
    with pytest.raises(ProtocolError):
        SmartHttpTransport(URL, session=session).discover_refs()


def test_malformed_ref_line(http):
    body = pkt_line('# service=git-upload-pack\n') + FLUSH_PKT + pkt_line('garbage\n') + FLUSH_PKT
    session = http.Session([http.Response(body, ADVERTISEMENT_TYPE)])
    with pytest.raises(ProtocolError):
        SmartHttpTransport(URL, session=session).discover_refs()


def test_http_error_status(http):
    session = http.Session([http.Response(b'not found', 'text/plain', status=404)])
    with pytest.raises(NetworkError) as excinfo:
        SmartHttpTransport(URL, session=session).discover_refs()
    assert '404' in str(excinfo.value)


def test_connection_error(http):
    session = http.Session([requests.ConnectionError('connection refused')])
    with pytest.raises(NetworkError):
        SmartHttpTransport(URL, session=session).discover_refs()


def test_build_request(discovered):
    """Test capabilities ride on the first want only, then flush and done."""
    transport, _ = discovered
    transport.discover_refs()
    packets = parse_pkt_lines(transport.build_request([COMMIT, TAG]))
    first = packets[0].decode()
    assert first.startswith(f'want {COMMIT} side-band-64k ofs-delta agent=zengit/')
    assert packets[1] == f'want {TAG}\n'.encode()
    assert packets[2] is None
    assert packets[3] == b'done\n'


def test_request_capabilities_follow_server(http):
    body = advertisement([(COMMIT, 'refs/heads/main')], caps='side-band')
    session = http.Session([http.Response(body, ADVERTISEMENT_TYPE)])
    transport = SmartHttpTransport(URL, session=session)
    transport.discover_refs()
    assert transport.request_capabilities() == ['side-band']


def test_fetch_unpacks_sideband_pack(http, repo, packs):
    pack, _ = packs.build_pack([('blob', b'x' * 2500), ('blob', b'small\n')])
    session = http.Session([
        http.Response(advertisement(DEFAULT_REFS), ADVERTISEMENT_TYPE),
        http.Response(upload_result(pack), RESULT_TYPE, chunk=333),
    ])
    transport = SmartHttpTransport(URL, session=session)
    transport.discover_refs()

    assert transport.fetch(repo, [COMMIT]) == 2
    assert repo.get(packs.object_id('blob', b'small\n')) == ('blob', b'small\n')

    post = session.requests[1]
    assert post.method == 'POST'
    assert post.url == URL + '/git-upload-pack'
    assert post.headers['Content-Type'] == 'application/x-git-upload-pack-request'
    assert post.data.endswith(FLUSH_PKT + pkt_line('done\n'))


def test_fetch_without_sideband(http, repo, packs):
    pack, _ = packs.build_pack([('blob', b'plain\n')])
    session = http.Session([
        http.Response(advertisement([(COMMIT, 'refs/heads/main')], caps='ofs-delta'),
                      ADVERTISEMENT_TYPE),
        http.Response(pkt_line('NAK\n') + pack, RESULT_TYPE),
    ])
    transport = SmartHttpTransport(URL, session=session)
    assert transport.fetch(repo, [COMMIT]) == 1


def test_fetch_nothing_makes_no_request(http, repo):
    session = http.Session([])
    assert SmartHttpTransport(URL, session=session).fetch(repo, []) == 0
    assert session.requests == []


def test_remote_error_band(discovered, http):
    transport, session = discovered
    transport.discover_refs()
    body = pkt_line('NAK\n') + pkt_line(b'\x03upload-pack: not our ref\n') + FLUSH_PKT
    session.responses.append(http.Response(body, RESULT_TYPE))
    with pytest.raises(ProtocolError) as excinfo:
        transport.fetch_pack([COMMIT])
    assert 'not our ref' in str(excinfo.value)


def test_err_packet_before_pack(discovered, http):
    transport, session = discovered
    transport.discover_refs()
    session.responses.append(http.Response(pkt_line('ERR access denied\n'), RESULT_TYPE))
    with pytest.raises(ProtocolError):
        transport.fetch_pack([COMMIT])


def test_corrupt_pack_in_response(discovered, http, repo):
    transport, session = discovered
    transport.discover_refs()
    session.responses.append(http.Response(upload_result(b'PACK' + b'\0' * 40), RESULT_TYPE))
    with pytest.raises(ProtocolError):
        transport.fetch(repo, [COMMIT])


def test_cancel_stops_transfer(http):
    token = CancelToken()
    session = http.Session([http.Response(advertisement(DEFAULT_REFS), ADVERTISEMENT_TYPE)])
    transport = SmartHttpTransport(URL, session=session, cancel_token=token)
    token.cancel()
    with pytest.raises(OperationCancelled):
        transport.discover_refs()
    assert session.requests == []


def test_close_only_closes_own_session(http):
    session = http.Session([])
    SmartHttpTransport(URL, session=session).close()
    assert not session.closed
