"""In-process OpenPGP symmetric encryption, interchangeable with gpg.

Written messages look like ``gpg --symmetric --cipher-algo AES256`` output::

    SKESK v4   AES-256, iterated+salted S2K over SHA-256
    SEIPD v1   AES-256 CFB over: random prefix | literal packet | MDC packet

Both data packets use partial body lengths, so neither side needs the
whole item in memory. Reading also accepts what gpg writes by default
(compressed data packets, old-format headers, encrypted session keys).
"""
import bz2
import hmac
import logging
import os
import struct
import time
import zlib

from contextlib import contextmanager

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

try:
    from cryptography.hazmat.decrepit.ciphers.modes import CFB
except ImportError:  # cryptography < 47
    from cryptography.hazmat.primitives.ciphers.modes import CFB

from tarvault.crypto.hash import DEFAULT_COUNT, S2K, derive_key
from tarvault.crypto.packets import (
    READ_SIZE,
    TAG_AEAD,
    TAG_COMPRESSED,
    TAG_LITERAL,
    TAG_MARKER,
    TAG_MDC,
    TAG_SED,
    TAG_SEIPD,
    TAG_SKESK,
    PartialWriter,
    Reader,
    packet,
    read_exact,
    read_packet,
)
from tarvault.utils.errors import AuthFailure, PipelineFailure
from tarvault.utils.helper import ask_passphrase

log = logging.getLogger(__name__)

CIPHER_AES256 = 9
KEY_SIZES = {7: 16, 8: 24, CIPHER_AES256: 32}  # AES-128/192/256
BLOCK = 16

MDC_HEADER = bytes([0xC0 | TAG_MDC, 20])
MDC_LEN = len(MDC_HEADER) + 20


def _cfb(key: bytes, encrypt: bool):
    cipher = Cipher(algorithms.AES(key), CFB(b"\x00" * BLOCK), backend=default_backend())
    return cipher.encryptor() if encrypt else cipher.decryptor()


def _sha1():
    return hashes.Hash(hashes.SHA1(), backend=default_backend())


class _CipherWriter:
    def __init__(self, sink, key: bytes):
        self._sink = sink
        self._enc = _cfb(key, True)
        self._mdc = _sha1()
        prefix = os.urandom(BLOCK)
        self.write(prefix + prefix[-2:])

    def write(self, data) -> int:
        data = bytes(data)
        self._mdc.update(data)
        self._sink.write(self._enc.update(data))
        return len(data)

    def close(self) -> None:
        self._mdc.update(MDC_HEADER)
        trailer = MDC_HEADER + self._mdc.finalize()
        self._sink.write(self._enc.update(trailer) + self._enc.finalize())
        self._sink.close()


class _MdcReader(Reader):
    """Decrypted SEIPD contents. The trailing MDC packet is held back and
    checked once the ciphertext is exhausted."""

    def __init__(self, body, decryptor, prefix: bytes):
        self._body = body
        self._dec = decryptor
        self._mdc = _sha1()
        self._mdc.update(prefix)
        self._pending = bytearray()
        self._ready = bytearray()
        self._done = False

    def _read1(self, n: int) -> bytes:
        while not self._ready and not self._done:
            chunk = self._body.read(READ_SIZE)
            self._pending += self._dec.update(chunk) if chunk else self._dec.finalize()
            cut = len(self._pending) - MDC_LEN
            if cut > 0:
                self._mdc.update(bytes(self._pending[:cut]))
                self._ready += self._pending[:cut]
                del self._pending[:cut]
            if not chunk:
                self._verify()
        out = bytes(self._ready[:n])
        del self._ready[:n]
        return out

    def _verify(self) -> None:
        self._done = True
        if len(self._pending) != MDC_LEN or bytes(self._pending[:2]) != MDC_HEADER:
            raise PipelineFailure("encrypted data has no modification detection code")
        self._mdc.update(MDC_HEADER)
        if not hmac.compare_digest(self._mdc.finalize(), bytes(self._pending[2:])):
            raise PipelineFailure("modification detected: encrypted data was altered")


class _InflateReader(Reader):
    def __init__(self, src, algo: int):
        self._src = src
        if algo == 1:
            self._d = zlib.decompressobj(-15)
        elif algo == 2:
            self._d = zlib.decompressobj()
        elif algo == 3:
            self._d = bz2.BZ2Decompressor()
        else:
            raise PipelineFailure(f"unsupported compression algorithm {algo}")
        self._buf = bytearray()
        self._eof = False

    def _read1(self, n: int) -> bytes:
        try:
            while not self._buf and not self._eof:
                chunk = self._src.read(READ_SIZE)
                if not chunk:
                    self._eof = True
                    if hasattr(self._d, "flush"):
                        self._buf += self._d.flush()
                elif not self._d.eof:
                    self._buf += self._d.decompress(chunk)
        except (zlib.error, OSError, EOFError) as exc:
            raise PipelineFailure(f"corrupt compressed data: {exc}") from exc
        out = bytes(self._buf[:n])
        del self._buf[:n]
        return out


def _session_keys(sessions: list[bytes], passphrase: str):
    usable = 0
    for data in sessions:
        if len(data) < 2 or data[0] != 4 or data[1] not in KEY_SIZES:
            log.debug("skipping unsupported SKESK packet")
            continue
        usable += 1
        s2k, offset = S2K.parse(data, 2)
        kek = derive_key(passphrase, s2k, KEY_SIZES[data[1]])
        wrapped = data[offset:]
        if not wrapped:
            yield kek
            continue
        dec = _cfb(kek, False)
        plain = dec.update(wrapped) + dec.finalize()
        if KEY_SIZES.get(plain[0]) == len(plain) - 1:
            yield plain[1:]
    if not usable:
        raise PipelineFailure("no supported symmetric session key packet")


def _open_message(fh, passphrase: str) -> _MdcReader:
    sessions = []
    while True:
        found = read_packet(fh)
        if found is None:
            raise PipelineFailure("no encrypted data found")
        tag, body = found
        if tag == TAG_SKESK:
            sessions.append(body.read())
        elif tag == TAG_MARKER:
            body.drain()
        elif tag == TAG_SEIPD:
            break
        elif tag == TAG_SED:
            raise PipelineFailure("encrypted data is not integrity protected")
        elif tag == TAG_AEAD:
            raise PipelineFailure("AEAD encrypted data needs the gpg backend (TARVAULT_BACKEND=gpg)")
        else:
            raise PipelineFailure(f"unsupported OpenPGP packet type {tag}")

    if not sessions:
        raise PipelineFailure("message is not encrypted with a passphrase")
    if read_exact(body, 1) != b"\x01":
        raise PipelineFailure("unsupported integrity protected data version")
    prefix_ct = read_exact(body, BLOCK + 2)
    for key in _session_keys(sessions, passphrase):
        dec = _cfb(key, False)
        prefix = dec.update(prefix_ct)
        # quick check: last two random octets are repeated
        if prefix[BLOCK - 2:BLOCK] == prefix[BLOCK:]:
            return _MdcReader(body, dec, prefix)
    raise AuthFailure("bad passphrase")


def _literal_body(src):
    while True:
        found = read_packet(src)
        if found is None:
            raise PipelineFailure("encrypted message holds no literal data")
        tag, body = found
        if tag == TAG_COMPRESSED:
            algo = read_exact(body, 1)[0]
            src = body if algo == 0 else _InflateReader(body, algo)
        elif tag == TAG_LITERAL:
            _fmt, name_len = read_exact(body, 2)
            read_exact(body, name_len + 4)  # file name, date
            return body
        elif tag == TAG_MARKER:
            body.drain()
        else:
            raise PipelineFailure(f"unexpected OpenPGP packet type {tag} in encrypted data")


@contextmanager
def encrypt_to(path, passphrase: str | None = None, count: int = DEFAULT_COUNT):
    """Yield a writable stream; what is written lands encrypted in ``path``."""
    if passphrase is None:
        passphrase = ask_passphrase(confirm=True)
    s2k = S2K.generate(count)
    key = derive_key(passphrase, s2k, KEY_SIZES[CIPHER_AES256])
    with open(path, "wb") as fh:
        fh.write(packet(TAG_SKESK, bytes([4, CIPHER_AES256]) + s2k.to_bytes()))
        seipd = PartialWriter(fh, TAG_SEIPD)
        seipd.write(b"\x01")
        cipher = _CipherWriter(seipd, key)
        literal = PartialWriter(cipher, TAG_LITERAL)
        literal.write(b"b\x00" + struct.pack(">I", int(time.time())))
        yield literal
        literal.close()
        cipher.close()
    log.debug("wrote %s", path)


@contextmanager
def decrypt_from(path, passphrase: str | None = None):
    """Yield a readable stream of the plaintext stored in ``path``.

    Data is handed out before the MDC is checked; the check runs when the
    block exits and raises PipelineFailure if the file was tampered with.
    """
    if passphrase is None:
        passphrase = ask_passphrase()
    with open(path, "rb") as fh:
        plaintext = _open_message(fh, passphrase)
        payload = _literal_body(plaintext)
        yield payload
        payload.drain()
        plaintext.drain()
