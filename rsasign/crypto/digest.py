"""Named digest algorithms over byte buffers and binary streams."""

import hashlib
from enum import Enum

from cryptography.hazmat.primitives import hashes

from rsasign.common import config

CHUNK_SIZE = 64 * 1024


class DigestSpec(str, Enum):
    MD5 = "MD5"
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def hashlib_name(self) -> str:
        return self.value.lower()

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        """Matching algorithm object for the native RSA primitive."""
        return _NATIVE[self]()


_NATIVE = {
    DigestSpec.MD5: hashes.MD5,
    DigestSpec.SHA1: hashes.SHA1,
    DigestSpec.SHA256: hashes.SHA256,
    DigestSpec.SHA512: hashes.SHA512,
}

_ALIASES = {
    "SHA-1": DigestSpec.SHA1,
    "SHA-256": DigestSpec.SHA256,
    "SHA-512": DigestSpec.SHA512,
}


def _default() -> DigestSpec:
    try:
        return DigestSpec(config.DEFAULT_DIGEST.upper())
    except ValueError:
        return DigestSpec.SHA256


def select(name) -> tuple[DigestSpec, bool]:
    """
    Resolve a digest name case-insensitively.

    Returns (spec, recognized). Absent or unknown names resolve to the
    default (SHA256) with recognized=False so callers can log it.
    """
    if isinstance(name, DigestSpec):
        return name, True
    if not name or not isinstance(name, str):
        return _default(), False
    key = name.strip().upper()
    if key in _ALIASES:
        return _ALIASES[key], True
    try:
        return DigestSpec(key), True
    except ValueError:
        return _default(), False


def new_hasher(algorithm):
    spec, _ = select(algorithm)
    return hashlib.new(spec.hashlib_name)


def digest(data: bytes, algorithm=DigestSpec.SHA256) -> bytes:
    h = new_hasher(algorithm)
    h.update(data)
    return h.digest()


def digest_stream(stream, algorithm=DigestSpec.SHA256, chunk_size: int = CHUNK_SIZE) -> bytes:
    """Hash a binary file object in one buffered pass."""
    h = new_hasher(algorithm)
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        h.update(chunk)
    return h.digest()


def digest_all(message) -> dict:
    """Every supported digest of a message, computed in a single pass."""
    hashers = {spec: hashlib.new(spec.hashlib_name) for spec in DigestSpec}
    if isinstance(message, str):
        message = message.encode("utf-8")
    if isinstance(message, (bytes, bytearray, memoryview)):
        chunks = [bytes(message)]
    else:
        chunks = iter(lambda: message.read(CHUNK_SIZE), b"")
    for chunk in chunks:
        for h in hashers.values():
            h.update(chunk)
    return {spec: h.digest() for spec, h in hashers.items()}


def digest_message(message, algorithm=DigestSpec.SHA256) -> bytes:
    """Hash bytes, str (UTF-8) or a binary file object."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    if isinstance(message, (bytes, bytearray, memoryview)):
        return digest(bytes(message), algorithm)
    return digest_stream(message, algorithm)
