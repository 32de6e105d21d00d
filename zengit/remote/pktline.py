"""pkt-line framing used by the Git smart protocol.

Each packet is a 4-hex-digit length (including the four length bytes)
followed by the payload. ``0000`` is a flush packet.
"""

from typing import Iterable, Iterator, List, Optional, Union

from zengit.core.errors import ProtocolError

FLUSH_PKT = b'0000'
DELIM_PKT = b'0001'
MAX_PKT_LEN = 65520
MAX_PKT_PAYLOAD = MAX_PKT_LEN - 4


def pkt_line(data: Union[bytes, str]) -> bytes:
    """Frame a payload as one pkt-line."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    if len(data) > MAX_PKT_PAYLOAD:
        raise ValueError(f"pkt-line payload too long: {len(data)} bytes")
    return f"{len(data) + 4:04x}".encode('ascii') + data


def pkt_lines(lines: Iterable[Union[bytes, str]], flush: bool = True) -> bytes:
    out = b''.join(pkt_line(line) for line in lines)
    return out + FLUSH_PKT if flush else out


class PktLineReader:
    """
    Reads pkt-lines from a stream of byte chunks.

    ``read()`` returns the payload, or None for a flush packet.
    """

    def __init__(self, chunks: Iterable[bytes], on_chunk=None):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._buffer = bytearray()
        self._on_chunk = on_chunk
        self._eof = False

    def _fill(self, size: int) -> bool:
        while len(self._buffer) < size and not self._eof:
            if self._on_chunk is not None:
                self._on_chunk()
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._eof = True
                break
            self._buffer.extend(chunk)
        return len(self._buffer) >= size

    def _take(self, size: int) -> bytes:
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def at_eof(self) -> bool:
        return not self._fill(1)

    def read(self) -> Optional[bytes]:
        """
        Read one packet.

        Raises:
            ProtocolError: On a malformed length or a truncated packet
        """
        if not self._fill(4):
            raise ProtocolError("Unexpected end of stream while reading pkt-line")
        header = self._take(4)
        try:
            length = int(header, 16)
        except ValueError:
            raise ProtocolError(f"Invalid pkt-line length {header!r}") from None
        if length in (0, 1, 2):
            return None
        if length < 4 or length > MAX_PKT_LEN:
            raise ProtocolError(f"Invalid pkt-line length {length}")
        if not self._fill(length - 4):
            raise ProtocolError("Truncated pkt-line")
        return self._take(length - 4)

    def read_until_flush(self) -> List[bytes]:
        lines = []
        while True:
            line = self.read()
            if line is None:
                return lines
            lines.append(line)

    def read_remaining(self) -> Iterator[bytes]:
        """Yield whatever unframed bytes are left in the stream."""
        if self._buffer:
            yield self._take(len(self._buffer))
        while self._fill(1):
            yield self._take(len(self._buffer))


def parse_pkt_lines(data: bytes) -> List[Optional[bytes]]:
    """Split a complete buffer into packets (None for flush)."""
    reader = PktLineReader([data])
    packets = []
    while not reader.at_eof():
        packets.append(reader.read())
    return packets
