"""OpenPGP packet framing (RFC 4880 section 4).

Writers emit new-format headers and use partial body lengths so packets of
unknown size can be streamed. Readers accept both old and new format.
"""
from typing import BinaryIO, Optional, Tuple

from tarvault.utils.errors import PipelineFailure

TAG_SKESK = 3
TAG_COMPRESSED = 8
TAG_SED = 9
TAG_MARKER = 10
TAG_LITERAL = 11
TAG_SEIPD = 18
TAG_MDC = 19
TAG_AEAD = 20

CHUNK_POWER = 16
CHUNK_SIZE = 1 << CHUNK_POWER
READ_SIZE = 64 * 1024


def encode_length(n: int) -> bytes:
    if n < 192:
        return bytes([n])
    if n < 8384:
        n -= 192
        return bytes([(n >> 8) + 192, n & 0xFF])
    return b"\xff" + n.to_bytes(4, "big")


def packet(tag: int, body: bytes) -> bytes:
    return bytes([0xC0 | tag]) + encode_length(len(body)) + body


def read_exact(src, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = src.read(n - len(buf))
        if not chunk:
            raise PipelineFailure("truncated OpenPGP data")
        buf += chunk
    return bytes(buf)


class PartialWriter:
    """Stream one packet's body into ``sink`` in fixed-size partial chunks."""

    def __init__(self, sink, tag: int):
        self._sink = sink
        self._tag = tag
        self._buf = bytearray()
        self._started = False

    def write(self, data) -> int:
        self._buf += data
        while len(self._buf) >= CHUNK_SIZE:
            if not self._started:
                self._sink.write(bytes([0xC0 | self._tag]))
                self._started = True
            self._sink.write(bytes([0xE0 | CHUNK_POWER]))
            self._sink.write(bytes(self._buf[:CHUNK_SIZE]))
            del self._buf[:CHUNK_SIZE]
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        # The last piece always carries a definite length, possibly zero.
        head = b"" if self._started else bytes([0xC0 | self._tag])
        self._sink.write(head + encode_length(len(self._buf)) + bytes(self._buf))
        self._buf.clear()
        self._started = True


class Reader:
    """Minimal readable stream; subclasses implement ``_read1``."""

    def _read1(self, n: int) -> bytes:
        raise NotImplementedError

    def read(self, size: Optional[int] = -1) -> bytes:
        out = bytearray()
        if size is None or size < 0:
            while True:
                chunk = self._read1(READ_SIZE)
                if not chunk:
                    return bytes(out)
                out += chunk
        while len(out) < size:
            chunk = self._read1(size - len(out))
            if not chunk:
                break
            out += chunk
        return bytes(out)

    def readable(self) -> bool:
        return True

    def drain(self) -> None:
        while self._read1(READ_SIZE):
            pass


class BodyReader(Reader):
    """Body of a single packet; follows partial body length chains."""

    def __init__(self, src, length: Optional[int], partial: bool = False):
        self._src = src
        self._remaining = length
        self._partial = partial

    def _read1(self, n: int) -> bytes:
        while self._remaining == 0:
            if not self._partial:
                return b""
            self._remaining, self._partial = _new_length(self._src)
        if self._remaining is None:
            # old-format indeterminate length: runs to the end of the input
            return self._src.read(n)
        chunk = self._src.read(min(n, self._remaining))
        if not chunk:
            raise PipelineFailure("truncated OpenPGP packet")
        self._remaining -= len(chunk)
        return chunk


def _new_length(src) -> Tuple[int, bool]:
    first = read_exact(src, 1)[0]
    if first < 192:
        return first, False
    if first < 224:
        return ((first - 192) << 8) + read_exact(src, 1)[0] + 192, False
    if first == 255:
        return int.from_bytes(read_exact(src, 4), "big"), False
    return 1 << (first & 0x1F), True


def read_packet(src: BinaryIO) -> Optional[Tuple[int, BodyReader]]:
    """Return (tag, body) for the next packet, or None at end of input."""
    ctb = src.read(1)
    if not ctb:
        return None
    b = ctb[0]
    if not b & 0x80:
        raise PipelineFailure("not an OpenPGP message")
    if b & 0x40:
        length, partial = _new_length(src)
        return b & 0x3F, BodyReader(src, length, partial)
    tag, length_type = (b >> 2) & 0x0F, b & 0x03
    if length_type == 3:
        return tag, BodyReader(src, None)
    size = (1, 2, 4)[length_type]
    return tag, BodyReader(src, int.from_bytes(read_exact(src, size), "big"))
