"""
Key records and file signing on top of the engine and the record store.

Every function returns a Result (or a Verification); storage and engine
failures are reported, never raised.
"""

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from rsasign.common.errors import ErrorKind, Result
from rsasign.common.protocol import (
    AutoSignRequest, ImportKeysRequest, KeyExportBundle, KeyParamsRequest,
    SaveKeyPairRequest, UpdateKeyPairRequest, format_validation_error,
)
from rsasign.common.utils import base64_encode, parse_decimal, short, utc_now_iso
from rsasign.crypto import algebra, digest as digests, keys, sign as engine
from rsasign.crypto.container import ContainerSigner, EnvelopeSigner
from rsasign.crypto.keys import JsonKey
from rsasign.crypto.tamper import classify
from rsasign.storage import db
from rsasign.storage.db import SignatureRecord

logger = logging.getLogger(__name__)


@dataclass
class KeyPairResult:
    public_key: str
    private_key: str
    signature: str | None = None
    sign_id: str | None = None


def _digest_name(name) -> str:
    spec, recognized = digests.select(name)
    if not recognized and name:
        logger.warning("Unknown digest %r, using %s", name, spec.value)
    return spec.value


def derive_ed(p, q) -> Result:
    """Result[{"e": str, "d": str}] for the primes p, q."""
    result = algebra.derive_ed_from_pq(p, q)
    if not result.ok:
        return result
    e, d = result.value
    return Result.success({"e": str(e), "d": str(d)})


def validate_params(req: KeyParamsRequest) -> Result:
    return algebra.validate_or_build_key(p=req.p, q=req.q, e=req.e, d=req.d, n=req.n)


def generate_key_pair_from_params(req: KeyParamsRequest) -> Result:
    """Validate (p, q, e, d) or (n, e, d) and encode the JSON key pair."""
    built = validate_params(req)
    if not built.ok:
        return built
    pair = keys.encode_pair(built.value)
    return Result.success(KeyPairResult(public_key=pair.public_key, private_key=pair.private_key))


def sign_data_from_params(req: KeyParamsRequest) -> Result:
    """Sign req.data with n = p*q (or the given n) and d."""
    if not req.data:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "data is empty")
    if req.p and req.q:
        n = parse_decimal(req.p) * parse_decimal(req.q)
    elif req.n:
        n = req.n
    else:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "either (p, q) or n is required")
    return engine.sign_with_ned(n, req.e, req.d, req.data.encode("utf-8"), _digest_name(req.hash_algorithm))


def generate_params(key_size: int = 2048) -> Result:
    return algebra.generate_params(key_size)


def auto_sign(req: AutoSignRequest) -> Result:
    """Generate fresh parameters, encode them as JSON keys and sign req.data."""
    generated = algebra.generate_params(req.key_size)
    if not generated.ok:
        return generated
    params = generated.value
    pair = keys.encode_pair(params)
    signed = engine.sign(req.data.encode("utf-8"), pair.private_key, _digest_name(req.hash_algorithm))
    if not signed.ok:
        return signed
    return Result.success(
        KeyPairResult(public_key=pair.public_key, private_key=pair.private_key, signature=signed.value)
    )


def generate_native_keys(user_id: str, key_size: int = 2048) -> Result:
    """Platform-generated key pair stored as base64 PKCS#1 blobs."""
    generated = algebra.generate_params(key_size)
    if not generated.ok:
        return generated
    pair = keys.encode_native_pair(keys.native_private_key(generated.value))
    record = SignatureRecord(
        user_id=user_id,
        public_key=pair.public_key,
        private_key=pair.private_key,
        signature_name=f"RSA {key_size}",
        signature_type=f"Rsa{key_size}",
    )
    saved = db.save_key_record(record)
    if not saved.ok:
        return saved
    return Result.success(KeyPairResult(pair.public_key, pair.private_key, sign_id=saved.value))


def _validate_json_relation(pub: JsonKey, priv: JsonKey, p="", q="") -> Result:
    """RSA relation for a JSON pair: full check with p, q; trial check without."""
    if p and q:
        return algebra.validate_or_build_key(p=p, q=q, e=pub.exponent, d=priv.exponent, n=pub.n)
    return algebra.validate_or_build_key(e=pub.exponent, d=priv.exponent, n=pub.n)


def check_key_pair(public_key: str, private_key: str, p="", q="") -> Result:
    """Decode both halves, check their form and, for JSON keys, the RSA relation."""
    pair = keys.check_pair(public_key, private_key)
    if not pair.ok:
        return pair
    pub, priv = pair.value
    if isinstance(pub, JsonKey):
        relation = _validate_json_relation(pub, priv, p, q)
        if not relation.ok:
            return relation
    return pair


def _record_for_pair(req: SaveKeyPairRequest) -> Result:
    """
    Check a key pair and build the record that stores it.

    Parameter columns are taken from the decoded halves; e and d given
    alongside the keys must agree with them. Native pairs carry no
    parameter columns.
    """
    checked = check_key_pair(req.public_key, req.private_key, req.p, req.q)
    if not checked.ok:
        return checked
    pub, priv = checked.value

    params = dict(p=None, q=None, e=None, d=None, n=None)
    if isinstance(pub, JsonKey):
        for name, given, actual in (("e", req.e, pub.exponent), ("d", req.d, priv.exponent)):
            if given and parse_decimal(given) != actual:
                return Result.fail(ErrorKind.INVALID_PARAMETERS, f"{name} does not match the key pair")
        params.update(e=str(pub.exponent), d=str(priv.exponent), n=str(pub.n))
        if req.p and req.q:
            params.update(p=str(parse_decimal(req.p)), q=str(parse_decimal(req.q)))

    return Result.success(SignatureRecord(
        user_id=req.user_id,
        public_key=req.public_key.strip(),
        private_key=req.private_key.strip(),
        signature_name=req.signature_name,
        signature_type=req.signature_type,
        **params,
    ))


def save_key_pair(req: SaveKeyPairRequest) -> Result:
    """Validate and store a key pair. Returns Result[sign id]."""
    built = _record_for_pair(req)
    if not built.ok:
        return built
    saved = db.save_key_record(built.value)
    if saved.ok:
        logger.info("Saved %s key pair %s for user %s", req.signature_type, saved.value, req.user_id)
    return saved


def update_key_pair(req: UpdateKeyPairRequest) -> Result:
    """Replace the keys and parameters of an existing record after the same checks as saving."""
    built = _record_for_pair(req)
    if not built.ok:
        return built
    record = built.value
    record.id = req.sign_id
    return db.update_key_record(record)


def get_key_details(user_id: str, sign_id: str) -> Result:
    record = db.get_key_record(user_id, sign_id)
    if record is None:
        return Result.fail(ErrorKind.NOT_FOUND, "signature record not found")
    return Result.success(record)


def parse_key_bundle(content: str) -> Result:
    """Parse and validate an exported key file. Returns Result[KeyExportBundle]."""
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        return Result.fail(ErrorKind.MALFORMED_KEY, f"key file is not valid JSON: {e}")
    if not isinstance(raw, dict):
        return Result.fail(ErrorKind.MALFORMED_KEY, "key file must be a JSON object")
    if not raw.get("publicKey") or not raw.get("privateKey"):
        return Result.fail(ErrorKind.MALFORMED_KEY, "key file must contain publicKey and privateKey")
    try:
        bundle = KeyExportBundle.model_validate(raw)
    except ValidationError as e:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, format_validation_error(e))

    logger.debug("Importing publicKey %s privateKey %s", short(bundle.public_key), short(bundle.private_key))
    checked = check_key_pair(bundle.public_key, bundle.private_key, bundle.p, bundle.q)
    if not checked.ok:
        return checked
    return Result.success(bundle)


def import_keys(req: ImportKeysRequest) -> Result:
    """Validate a key file and store it as a new record. Returns Result[sign id]."""
    parsed = parse_key_bundle(req.key_file_content)
    if not parsed.ok:
        return parsed
    bundle = parsed.value
    return save_key_pair(SaveKeyPairRequest(
        public_key=bundle.public_key,
        private_key=bundle.private_key,
        signature_name=req.signature_name,
        signature_type=req.signature_type,
        user_id=req.user_id,
        p=bundle.p, q=bundle.q, e=bundle.e, d=bundle.d,
    ))


def build_export_bundle(record: SignatureRecord) -> KeyExportBundle:
    return KeyExportBundle(
        signature_name=record.signature_name or "Exported Signature",
        signature_type=record.signature_type or "Manual",
        export_date=utc_now_iso(),
        public_key=record.public_key,
        private_key=record.private_key,
        p=record.p or "",
        q=record.q or "",
        e=record.e or "",
        d=record.d or "",
    )


def export_keys(user_id: str, sign_id: str) -> Result:
    """Result[str] holding the JSON key file for one record."""
    details = get_key_details(user_id, sign_id)
    if not details.ok:
        return details
    return Result.success(build_export_bundle(details.value).to_json())


def _record_signing_key(record: SignatureRecord):
    """The private key a stored record signs with: its validated key text, else d and n."""
    if record.private_key:
        return keys.decode(record.private_key, expect_public=False)
    if record.has_manual_params:
        try:
            return Result.success(JsonKey(exponent=parse_decimal(record.d), n=parse_decimal(record.n),
                                          is_public=False))
        except ValueError as e:
            return Result.fail(ErrorKind.INVALID_KEY, f"stored parameters are invalid: {e}")
    return Result.fail(ErrorKind.MALFORMED_KEY, "no usable key in the signature record")


def sign_file(stream, user_id: str = "", sign_id: str = "", hash_algorithm: str = "SHA256",
              private_key: str = "", n: str = "", e: str = "", d: str = "") -> Result:
    """
    Sign a binary stream with, in order of preference: a stored record
    (user_id + sign_id), private key text, or raw n and d.
    Returns Result[base64 signature].
    """
    algorithm = _digest_name(hash_algorithm)
    if sign_id:
        details = get_key_details(user_id, sign_id)
        if not details.ok:
            return details
        key = _record_signing_key(details.value)
        if not key.ok:
            return key
        logger.info("Signing with record %s (%s)", sign_id, details.value.signature_type)
        return engine.sign(stream, key.value, algorithm)
    if private_key:
        return engine.sign(stream, private_key, algorithm)
    if n and d:
        try:
            key = JsonKey(exponent=parse_decimal(d), n=parse_decimal(n), is_public=False)
        except ValueError as exc:
            return Result.fail(ErrorKind.INVALID_KEY, f"cannot parse key parameters: {exc}")
        return engine.sign(stream, key, algorithm)
    return Result.fail(
        ErrorKind.INVALID_PARAMETERS,
        "no signing key: give a signature record, a private key, or n and d",
    )


def verify_file(stream, signature: str, public_key: str, hash_algorithm: str = "SHA256"):
    """Verification of a detached signature over a binary stream."""
    if not public_key:
        return engine.Verification(False, "Public key is required", ErrorKind.MALFORMED_KEY)
    return engine.verify(stream, signature, public_key, _digest_name(hash_algorithm))


def verification_report(verification) -> dict:
    """Caller-facing summary of a verification, including the tamper heuristic."""
    return {
        "valid": verification.valid,
        "diagnostic": verification.diagnostic,
        "error": verification.error.value if verification.error else None,
        "verdict": classify(verification).value,
        "currentHash": verification.current_hash,
    }


def sign_container(document: bytes, user_id: str, sign_id: str,
                   signer: ContainerSigner | None = None) -> Result:
    """Embed a signature for a stored native key record inside the document."""
    details = get_key_details(user_id, sign_id)
    if not details.ok:
        return details
    user = db.get_user(user_id)
    if user is None:
        return Result.fail(ErrorKind.NOT_FOUND, "user not found")

    signer = signer or EnvelopeSigner()
    signed = signer.sign(document, details.value.private_key, user.full_name, user.email)
    if not signed.ok:
        return signed
    db.set_document_hash(sign_id, base64_encode(digests.digest(signed.value, "SHA256")))
    return signed


def verify_container(container: bytes, signer: ContainerSigner | None = None):
    return (signer or EnvelopeSigner()).verify(container)
