import os

from dataclasses import dataclass

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes

from tarvault.utils.errors import PipelineFailure

S2K_SIMPLE = 0
S2K_SALTED = 1
S2K_ITERATED = 3

HASH_SHA1 = 2
HASH_SHA256 = 8

HASHES = {
    HASH_SHA1: hashes.SHA1,
    HASH_SHA256: hashes.SHA256,
    9: hashes.SHA384,
    10: hashes.SHA512,
    11: hashes.SHA224,
}

# 0xFF encodes 65011712 octets, the most gpg will write
DEFAULT_COUNT = 0xFF
BLOCK_TARGET = 64 * 1024


def decode_count(coded: int) -> int:
    return (16 + (coded & 15)) << ((coded >> 4) + 6)


@dataclass(frozen=True)
class S2K:
    kind: int = S2K_ITERATED
    hash_algo: int = HASH_SHA256
    salt: bytes = b""
    count: int = DEFAULT_COUNT

    @classmethod
    def generate(cls, count: int = DEFAULT_COUNT) -> "S2K":
        return cls(S2K_ITERATED, HASH_SHA256, os.urandom(8), count)

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> tuple["S2K", int]:
        kind = data[offset] if len(data) > offset else None
        needed = {S2K_SIMPLE: 2, S2K_SALTED: 10, S2K_ITERATED: 11}.get(kind, 2)
        if len(data) < offset + needed:
            raise PipelineFailure("truncated S2K specifier")
        hash_algo = data[offset + 1]
        offset += 2
        if kind == S2K_SIMPLE:
            return cls(kind, hash_algo), offset
        if kind == S2K_SALTED:
            return cls(kind, hash_algo, data[offset:offset + 8]), offset + 8
        if kind == S2K_ITERATED:
            return cls(kind, hash_algo, data[offset:offset + 8], data[offset + 8]), offset + 9
        raise PipelineFailure(f"unsupported S2K type {kind}")

    def to_bytes(self) -> bytes:
        out = bytes([self.kind, self.hash_algo])
        if self.kind in (S2K_SALTED, S2K_ITERATED):
            out += self.salt
        if self.kind == S2K_ITERATED:
            out += bytes([self.count])
        return out


def _feed(digest: hashes.Hash, s2k: S2K, secret: bytes) -> None:
    if s2k.kind == S2K_SIMPLE:
        digest.update(secret)
        return
    data = s2k.salt + secret
    if s2k.kind == S2K_SALTED:
        digest.update(data)
        return
    total = max(decode_count(s2k.count), len(data))
    reps, rest = divmod(total, len(data))
    per_block = max(1, BLOCK_TARGET // len(data))
    block = data * per_block
    blocks, extra = divmod(reps, per_block)
    for _ in range(blocks):
        digest.update(block)
    digest.update(data * extra + data[:rest])


def derive_key(passphrase: str, s2k: S2K, key_len: int) -> bytes:
    """OpenPGP string-to-key (RFC 4880 3.7.1)."""
    try:
        algo = HASHES[s2k.hash_algo]
    except KeyError:
        raise PipelineFailure(f"unsupported S2K hash algorithm {s2k.hash_algo}") from None
    secret = passphrase.encode("utf-8")
    key = b""
    preload = 0
    while len(key) < key_len:
        digest = hashes.Hash(algo(), backend=default_backend())
        digest.update(b"\x00" * preload)
        _feed(digest, s2k, secret)
        key += digest.finalize()
        preload += 1
    return key[:key_len]
