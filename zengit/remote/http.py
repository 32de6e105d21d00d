"""Smart HTTP transport (upload-pack side only, for clone).

Ref discovery:
    GET <url>/info/refs?service=git-upload-pack
Pack request:
    POST <url>/git-upload-pack with want lines, a flush and ``done``
"""

import logging
from typing import Iterator, List, Optional

import requests

from zengit import __version__
from zengit.core.errors import NetworkError, ProtocolError
from zengit.remote.pktline import PktLineReader, pkt_line, FLUSH_PKT
from zengit.remote.transport import CancelToken, RefAdvertisement, Transport
from zengit.remote.unpack import unpack_pack

logger = logging.getLogger(__name__)

SERVICE = 'git-upload-pack'
ADVERTISEMENT_TYPE = f'application/x-{SERVICE}-advertisement'
REQUEST_TYPE = f'application/x-{SERVICE}-request'
RESULT_TYPE = f'application/x-{SERVICE}-result'
AGENT = f'zengit/{__version__}'

CHUNK_SIZE = 65536

BAND_DATA = 1
BAND_PROGRESS = 2
BAND_ERROR = 3


def parse_advertisement(reader: PktLineReader) -> RefAdvertisement:
    """
    Parse a v0/v1 ref advertisement.

    The first ref line carries the capability list after a NUL byte.
    An empty repository advertises ``capabilities^{}`` with the zero id.
    """
    adv = RefAdvertisement()
    first = True
    while True:
        line = reader.read()
        if line is None:
            break
        line = line.rstrip(b'\n')
        if first:
            first = False
            if line.startswith(b'version '):
                version = line[8:].decode('ascii', 'replace')
                if version != '1':
                    raise ProtocolError(f"Unsupported protocol version {version}")
                first = True
                continue
            line, _, caps = line.partition(b'\0')
            adv.capabilities = set(caps.decode('utf-8', 'replace').split())
        try:
            oid, name = line.decode('utf-8').split(' ', 1)
        except ValueError:
            raise ProtocolError(f"Malformed ref advertisement line: {line!r}") from None
        if len(oid) != 40:
            raise ProtocolError(f"Malformed object id in advertisement: {oid!r}")
        if name == 'capabilities^{}':
            continue
        if name.endswith('^{}'):
            adv.peeled[name[:-3]] = oid
        elif name == 'HEAD':
            adv.head = oid
        else:
            adv.refs[name] = oid

    for cap in adv.capabilities:
        if cap.startswith('symref=HEAD:'):
            adv.head_target = cap[len('symref=HEAD:'):]
    return adv


class SmartHttpTransport(Transport):
    """
    Clone-side smart HTTP client built on a ``requests.Session``.

    Args:
        url: Repository URL (``https://host/owner/repo.git``)
        session: Session to use; one is created when omitted
        timeout: Seconds to wait for connect and for each read
        cancel_token: Checked between received chunks
    """

    def __init__(self, url: str, session: Optional[requests.Session] = None,
                 timeout: float = 60, cancel_token: Optional[CancelToken] = None):
        super().__init__(url.rstrip('/'), cancel_token)
        self.timeout = timeout
        self._own_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': AGENT})
        self.advertisement: Optional[RefAdvertisement] = None

    def _chunks(self, response) -> Iterator[bytes]:
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                self.check_cancelled()
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            raise NetworkError(f"Connection to {self.url} failed: {e}") from e

    def _request(self, method: str, url: str, **kwargs):
        self.check_cancelled()
        try:
            response = self.session.request(method, url, timeout=self.timeout, stream=True, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Connection to {self.url} failed: {e}") from e
        return response

    def discover_refs(self) -> RefAdvertisement:
        """
        Raises:
            NetworkError: On connection failures and HTTP error statuses
            ProtocolError: If the server is not a smart HTTP server
        """
        url = f"{self.url}/info/refs"
        logger.debug("Discovering refs at %s", url)
        response = self._request('GET', url, params={'service': SERVICE})
        try:
            content_type = response.headers.get('Content-Type', '')
            if not content_type.startswith(ADVERTISEMENT_TYPE):
                raise ProtocolError(
                    f"{self.url} does not speak the smart HTTP protocol (got {content_type or 'no content type'})"
                )
            reader = PktLineReader(self._chunks(response))
            banner = reader.read()
            if banner is None or banner.rstrip(b'\n') != f'# service={SERVICE}'.encode():
                raise ProtocolError(f"Unexpected service banner: {banner!r}")
            if reader.read() is not None:
                raise ProtocolError("Missing flush after service banner")
            self.advertisement = parse_advertisement(reader)
        finally:
            response.close()

        logger.debug(
            "Remote advertises %d refs, HEAD -> %s",
            len(self.advertisement.refs), self.advertisement.head_target
        )
        return self.advertisement

    def request_capabilities(self) -> List[str]:
        """Capabilities to ask for, limited to what the server offers."""
        offered = self.advertisement.capabilities if self.advertisement else set()
        caps = []
        if 'side-band-64k' in offered:
            caps.append('side-band-64k')
        elif 'side-band' in offered:
            caps.append('side-band')
        if 'ofs-delta' in offered:
            caps.append('ofs-delta')
        if any(cap.startswith('agent=') for cap in offered):
            caps.append(f'agent={AGENT}')
        return caps

    def build_request(self, wants: List[str]) -> bytes:
        caps = self.request_capabilities()
        lines = []
        for i, oid in enumerate(wants):
            if i == 0 and caps:
                lines.append(pkt_line(f"want {oid} {' '.join(caps)}\n"))
            else:
                lines.append(pkt_line(f"want {oid}\n"))
        lines.append(FLUSH_PKT)
        lines.append(pkt_line("done\n"))
        return b''.join(lines)

    def receive_pack(self, reader: PktLineReader, sideband: bool) -> bytes:
        """
        Collect pack bytes from an upload-pack response.

        Raises:
            ProtocolError: On a fatal error message (band 3) or garbage
        """
        # Acknowledgement section: NAK (no haves were sent) or ACK lines
        while True:
            line = reader.read()
            if line is None or line.startswith(b'ACK'):
                continue
            if line.startswith(b'NAK'):
                break
            if line.startswith(b'ERR '):
                raise ProtocolError(f"Remote error: {line[4:].decode('utf-8', 'replace').strip()}")
            raise ProtocolError(f"Unexpected line before pack data: {line[:40]!r}")

        if not sideband:
            return b''.join(reader.read_remaining())

        pack = bytearray()
        while not reader.at_eof():
            packet = reader.read()
            if packet is None:
                break
            if not packet:
                continue
            band, payload = packet[0], packet[1:]
            if band == BAND_DATA:
                pack.extend(payload)
            elif band == BAND_PROGRESS:
                message = payload.decode('utf-8', 'replace').strip()
                if message:
                    logger.debug("remote: %s", message)
            elif band == BAND_ERROR:
                raise ProtocolError(f"Remote error: {payload.decode('utf-8', 'replace').strip()}")
            else:
                raise ProtocolError(f"Unknown side-band channel {band}")
        return bytes(pack)

    def fetch_pack(self, wants: List[str]) -> bytes:
        """Request ``wants`` with no haves and return the raw pack."""
        if self.advertisement is None:
            self.discover_refs()
        body = self.build_request(wants)
        sideband = any(cap.startswith('side-band') for cap in self.request_capabilities())
        logger.debug("Requesting %d objects from %s", len(wants), self.url)

        response = self._request(
            'POST', f"{self.url}/{SERVICE}", data=body,
            headers={'Content-Type': REQUEST_TYPE, 'Accept': RESULT_TYPE},
        )
        try:
            content_type = response.headers.get('Content-Type', '')
            if content_type and not content_type.startswith(RESULT_TYPE):
                raise ProtocolError(f"Unexpected content type {content_type}")
            return self.receive_pack(PktLineReader(self._chunks(response)), sideband)
        finally:
            response.close()

    def fetch(self, repo, wants: List[str]) -> int:
        if not wants:
            return 0
        data = self.fetch_pack(wants)
        count = unpack_pack(repo, data, self.cancel_token)
        logger.info("Received %d objects (%d bytes) from %s", count, len(data), self.url)
        return count

    def close(self) -> None:
        if self._own_session:
            self.session.close()
