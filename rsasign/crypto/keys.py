"""
Key text encoding.

A key half is stored as text in one of two forms:

* JSON: ``{"e": "<decimal>", "n": "<decimal>"}`` (public) or
  ``{"d": "<decimal>", "n": "<decimal>"}`` (private), used by the manual
  textbook-RSA path;
* a base64 DER blob (PKCS#1 RSAPublicKey / RSAPrivateKey) used by the
  native PKCS#1 v1.5 path.

decode() sniffs the text once and returns a JsonKey or a NativeBlob;
everything downstream dispatches on that type.
"""

import json
from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from rsasign.common.errors import ErrorKind, Result
from rsasign.common.utils import base64_decode, base64_encode, parse_decimal
from rsasign.crypto.algebra import KeyParameters, mod_inverse

PUBLIC_FIELDS = frozenset({"e", "n"})
PRIVATE_FIELDS = frozenset({"d", "n"})


@dataclass(frozen=True)
class JsonKey:
    exponent: int
    n: int
    is_public: bool

    @property
    def field(self) -> str:
        return "e" if self.is_public else "d"

    def to_text(self) -> str:
        return json.dumps({self.field: str(self.exponent), "n": str(self.n)}, separators=(",", ":"))


@dataclass(frozen=True)
class NativeBlob:
    der: bytes

    def to_text(self) -> str:
        return base64_encode(self.der)


@dataclass(frozen=True)
class EncodedKeyPair:
    public_key: str
    private_key: str


def encode(params: KeyParameters, public: bool) -> str:
    """JSON text for one half of the key."""
    if public:
        return json.dumps({"e": str(params.e), "n": str(params.n)}, separators=(",", ":"))
    return json.dumps({"d": str(params.d), "n": str(params.n)}, separators=(",", ":"))


def encode_pair(params: KeyParameters) -> EncodedKeyPair:
    return EncodedKeyPair(public_key=encode(params, True), private_key=encode(params, False))


def encode_native_pair(private_key: rsa.RSAPrivateKey) -> EncodedKeyPair:
    """Base64 PKCS#1 DER for both halves of a platform RSA key."""
    priv_der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption()
    )
    pub_der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.PKCS1
    )
    return EncodedKeyPair(public_key=base64_encode(pub_der), private_key=base64_encode(priv_der))


def native_private_key(params: KeyParameters) -> rsa.RSAPrivateKey:
    """Platform RSA key from a parameter set that includes p and q."""
    if params.p is None or params.q is None:
        raise ValueError("p and q are required to build a native key")
    public_numbers = rsa.RSAPublicNumbers(params.e, params.n)
    return rsa.RSAPrivateNumbers(
        p=params.p,
        q=params.q,
        d=params.d,
        dmp1=params.d % (params.p - 1),
        dmq1=params.d % (params.q - 1),
        iqmp=mod_inverse(params.q, params.p),
        public_numbers=public_numbers,
    ).private_key()


def _decode_json(obj, expect_public: bool | None) -> Result:
    if not isinstance(obj, dict):
        return Result.fail(ErrorKind.MALFORMED_KEY, "JSON key must be an object")
    fields = frozenset(obj)
    if fields == PUBLIC_FIELDS:
        is_public = True
    elif fields == PRIVATE_FIELDS:
        is_public = False
    else:
        missing = "n" if "n" not in obj else ("e or d" if not obj.keys() & {"e", "d"} else None)
        if missing:
            return Result.fail(ErrorKind.MALFORMED_KEY, f"JSON key is missing {missing}")
        return Result.fail(
            ErrorKind.MALFORMED_KEY,
            f"JSON key must have exactly (e, n) or (d, n), got {sorted(fields)}",
        )

    if expect_public is not None and is_public != expect_public:
        wanted = "public (e, n)" if expect_public else "private (d, n)"
        return Result.fail(ErrorKind.MALFORMED_KEY, f"expected a {wanted} key")

    values = {}
    for name in fields:
        raw = obj[name]
        if not isinstance(raw, str):
            return Result.fail(ErrorKind.MALFORMED_KEY, f"field {name} must be a decimal string")
        try:
            values[name] = parse_decimal(raw)
        except ValueError as e:
            return Result.fail(ErrorKind.MALFORMED_KEY, f"field {name}: {e}")

    exponent = values["e"] if is_public else values["d"]
    return Result.success(JsonKey(exponent=exponent, n=values["n"], is_public=is_public))


def decode(text: str, expect_public: bool | None = None) -> Result:
    """
    Decode key text into a JsonKey or NativeBlob.

    JSON that is an object but not exactly (e, n) / (d, n) is MalformedKey;
    it never falls through to the blob path. Text that is not a JSON object
    must be base64, else MalformedKey.
    """
    if not isinstance(text, str) or not text.strip():
        return Result.fail(ErrorKind.MALFORMED_KEY, "key text is empty")
    text = text.strip()
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        pass
    else:
        if isinstance(obj, dict):
            return _decode_json(obj, expect_public)
        if text.startswith("["):
            return Result.fail(ErrorKind.MALFORMED_KEY, "JSON key must be an object")

    try:
        der = base64_decode(text)
    except ValueError as e:
        return Result.fail(ErrorKind.MALFORMED_KEY, f"key is neither JSON nor base64: {e}")
    return Result.success(NativeBlob(der=der))


def key_form(text: str) -> str | None:
    """'json', 'native', or None when the text does not decode."""
    decoded = decode(text)
    if not decoded.ok:
        return None
    return "json" if isinstance(decoded.value, JsonKey) else "native"


def load_native_private(blob: NativeBlob) -> Result:
    try:
        key = serialization.load_der_private_key(blob.der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        return Result.fail(ErrorKind.MALFORMED_KEY, f"cannot import private key: {e}")
    if not isinstance(key, rsa.RSAPrivateKey):
        return Result.fail(ErrorKind.MALFORMED_KEY, "private key is not an RSA key")
    return Result.success(key)


def load_native_public(blob: NativeBlob) -> Result:
    try:
        key = serialization.load_der_public_key(blob.der)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        return Result.fail(ErrorKind.MALFORMED_KEY, f"cannot import public key: {e}")
    if not isinstance(key, rsa.RSAPublicKey):
        return Result.fail(ErrorKind.MALFORMED_KEY, "public key is not an RSA key")
    return Result.success(key)


def match_public_private_modulus(pub: JsonKey, priv: JsonKey) -> bool:
    """Compare moduli as integers, so '0143' and '143' agree."""
    return pub.n == priv.n


def _check_native_pair(pub: NativeBlob, priv: NativeBlob) -> Result:
    loaded_priv = load_native_private(priv)
    if not loaded_priv.ok:
        return loaded_priv
    loaded_pub = load_native_public(pub)
    if not loaded_pub.ok:
        return loaded_pub
    private_key, public_key = loaded_priv.value, loaded_pub.value
    if private_key.public_key().public_numbers().n != public_key.public_numbers().n:
        return Result.fail(
            ErrorKind.MODULUS_MISMATCH, "modulus (n) differs between public and private key"
        )
    sample = bytes([1, 2, 3, 4, 5])
    try:
        encrypted = public_key.encrypt(sample, padding.PKCS1v15())
        decrypted = private_key.decrypt(encrypted, padding.PKCS1v15())
    except ValueError as e:
        return Result.fail(ErrorKind.INVALID_KEY, f"RSA encrypt/decrypt check failed: {e}")
    if decrypted != sample:
        return Result.fail(ErrorKind.INVALID_KEY, "RSA encrypt/decrypt check failed")
    return Result.success((pub, priv))


def check_pair(public_text: str, private_text: str) -> Result:
    """
    Decode both halves and check they belong together.

    Both halves must use the same form; JSON halves must share n and native
    halves must load and survive an encrypt/decrypt round trip.
    Returns Result[(public, private)].
    """
    pub = decode(public_text, expect_public=True)
    if not pub.ok:
        return Result.fail(pub.kind, f"public key: {pub.message}")
    priv = decode(private_text, expect_public=False)
    if not priv.ok:
        return Result.fail(priv.kind, f"private key: {priv.message}")

    if type(pub.value) is not type(priv.value):
        return Result.fail(
            ErrorKind.MALFORMED_KEY, "public and private key use different encodings"
        )
    if isinstance(pub.value, JsonKey):
        if not match_public_private_modulus(pub.value, priv.value):
            return Result.fail(
                ErrorKind.MODULUS_MISMATCH, "modulus (n) differs between public and private key"
            )
        return Result.success((pub.value, priv.value))
    return _check_native_pair(pub.value, priv.value)
