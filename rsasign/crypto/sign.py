"""
RSA sign/verify over JSON (textbook) and native (PKCS#1 v1.5) keys.

JSON keys use raw RSA: the digest is read as a big-endian integer, reduced
mod n and raised to d. There is no padding, so this path is malleable and
cryptographically weak; it is kept bit-for-bit compatible with signatures
already issued. Verification is stricter than the plain comparison
S^e mod n == H mod n: a signature integer S >= n is rejected outright, so
S + k*n is not accepted as a variant of S. Signatures produced by sign()
are always below n. Native keys go through the platform PKCS#1 v1.5 primitive.
The two paths never verify each other's signatures.
"""

from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from rsasign.common.errors import ErrorKind, Result
from rsasign.common.utils import base64_decode, base64_encode, bytes_to_int, int_to_base64, parse_decimal
from rsasign.crypto import digest as digests
from rsasign.crypto.algebra import MIN_COMPONENT, mod_pow
from rsasign.crypto.digest import DigestSpec
from rsasign.crypto.keys import JsonKey, NativeBlob, decode, load_native_private, load_native_public

MISMATCH_MESSAGE = "Signature does not match the document: current hash: {}"
OUT_OF_RANGE_MESSAGE = "Signature value is inconsistent with the key modulus"
DIGEST_MISMATCH_MESSAGE = "Digest algorithm mismatch: signature was made with {}, verified with {}"
VALID_MESSAGE = "Signature is valid"


@dataclass(frozen=True)
class Verification:
    valid: bool
    diagnostic: str
    error: ErrorKind | None = None
    current_hash: str | None = None
    detected_digest: DigestSpec | None = None

    @property
    def structural(self) -> bool:
        """True when inputs were malformed rather than cryptographically wrong."""
        return self.error is not None and self.error != ErrorKind.VERIFICATION_FAILED


def _resolve_key(key, expect_public: bool) -> Result:
    if isinstance(key, (JsonKey, NativeBlob)):
        if isinstance(key, JsonKey) and key.is_public != expect_public:
            wanted = "public (e, n)" if expect_public else "private (d, n)"
            return Result.fail(ErrorKind.MALFORMED_KEY, f"expected a {wanted} key")
        return Result.success(key)
    return decode(key, expect_public=expect_public)


def _raw_sign(hash_bytes: bytes, key: JsonKey) -> str:
    h = bytes_to_int(hash_bytes) % key.n
    return int_to_base64(mod_pow(h, key.exponent, key.n))


def _native_sign(hash_bytes: bytes, blob: NativeBlob, spec: DigestSpec) -> Result:
    loaded = load_native_private(blob)
    if not loaded.ok:
        return loaded
    private_key = loaded.value
    try:
        signature = private_key.sign(hash_bytes, padding.PKCS1v15(), Prehashed(spec.hash_algorithm()))
    except (ValueError, UnsupportedAlgorithm) as e:
        return Result.fail(ErrorKind.INVALID_KEY, f"RSA signing failed: {e}")
    return Result.success(base64_encode(signature))


def sign(message, key, digest_algorithm="SHA256") -> Result:
    """
    Sign a message (bytes, str or binary file object) with a private key.

    key is private key text (JSON (d, n) or base64 DER) or an already
    decoded JsonKey/NativeBlob. Returns Result[base64 signature].
    """
    spec, _ = digests.select(digest_algorithm)
    resolved = _resolve_key(key, expect_public=False)
    if not resolved.ok:
        return resolved
    key = resolved.value

    if isinstance(key, JsonKey):
        if key.n < MIN_COMPONENT or key.exponent < MIN_COMPONENT:
            return Result.fail(ErrorKind.INVALID_KEY, "n and d must be >= 3")
        hash_bytes = digests.digest_message(message, spec)
        return Result.success(_raw_sign(hash_bytes, key))

    hash_bytes = digests.digest_message(message, spec)
    return _native_sign(hash_bytes, key, spec)


def sign_with_ned(n, e, d, message, digest_algorithm="SHA256") -> Result:
    """Textbook signature from raw decimal n, e, d."""
    try:
        n_i, e_i, d_i = parse_decimal(n), parse_decimal(e), parse_decimal(d)
    except ValueError as exc:
        return Result.fail(ErrorKind.INVALID_KEY, f"cannot parse key parameters: {exc}")
    if min(n_i, e_i, d_i) < MIN_COMPONENT:
        return Result.fail(ErrorKind.INVALID_KEY, "n, e and d must be >= 3")
    return sign(message, JsonKey(exponent=d_i, n=n_i, is_public=False), digest_algorithm)


def _raw_verify(signature: int, hashes: dict, key: JsonKey, spec: DigestSpec) -> Verification:
    current = base64_encode(hashes[spec])
    if signature >= key.n:
        return Verification(False, OUT_OF_RANGE_MESSAGE, ErrorKind.VERIFICATION_FAILED, current)
    recovered = mod_pow(signature, key.exponent, key.n)
    if recovered == bytes_to_int(hashes[spec]) % key.n:
        return Verification(True, VALID_MESSAGE, current_hash=current)
    for other, other_hash in hashes.items():
        if other != spec and recovered == bytes_to_int(other_hash) % key.n:
            return Verification(
                False,
                DIGEST_MISMATCH_MESSAGE.format(other.value, spec.value),
                ErrorKind.VERIFICATION_FAILED,
                current,
                detected_digest=other,
            )
    return Verification(False, MISMATCH_MESSAGE.format(current), ErrorKind.VERIFICATION_FAILED, current)


def _native_verify(signature: bytes, hashes: dict, blob: NativeBlob, spec: DigestSpec) -> Verification:
    loaded = load_native_public(blob)
    if not loaded.ok:
        return Verification(False, loaded.message, loaded.kind)
    public_key = loaded.value
    current = base64_encode(hashes[spec])

    def matches(candidate: DigestSpec) -> bool:
        try:
            public_key.verify(
                signature, hashes[candidate], padding.PKCS1v15(), Prehashed(candidate.hash_algorithm())
            )
            return True
        except (InvalidSignature, UnsupportedAlgorithm):
            return False

    if matches(spec):
        return Verification(True, VALID_MESSAGE, current_hash=current)
    for other in DigestSpec:
        if other != spec and matches(other):
            return Verification(
                False,
                DIGEST_MISMATCH_MESSAGE.format(other.value, spec.value),
                ErrorKind.VERIFICATION_FAILED,
                current,
                detected_digest=other,
            )
    return Verification(False, MISMATCH_MESSAGE.format(current), ErrorKind.VERIFICATION_FAILED, current)


def verify(message, signature_b64: str, key, digest_algorithm="SHA256") -> Verification:
    """
    Verify a detached signature against a public key.

    Malformed inputs come back with SignatureMalformed / MalformedKey /
    InvalidKey; only a well-formed signature that does not match yields
    VerificationFailed, whose diagnostic carries the recomputed hash.
    """
    spec, _ = digests.select(digest_algorithm)
    if not isinstance(signature_b64, str) or not signature_b64.strip():
        return Verification(False, "Signature is required", ErrorKind.SIGNATURE_MALFORMED)
    try:
        signature = base64_decode(signature_b64)
    except ValueError as e:
        return Verification(False, f"Signature is not valid base64: {e}", ErrorKind.SIGNATURE_MALFORMED)

    resolved = _resolve_key(key, expect_public=True)
    if not resolved.ok:
        return Verification(False, resolved.message, resolved.kind)
    key = resolved.value

    if isinstance(key, JsonKey) and (key.n < MIN_COMPONENT or key.exponent < MIN_COMPONENT):
        return Verification(False, "n and e must be >= 3", ErrorKind.INVALID_KEY)

    hashes = digests.digest_all(message)
    if isinstance(key, JsonKey):
        return _raw_verify(bytes_to_int(signature), hashes, key, spec)
    return _native_verify(signature, hashes, key, spec)
