"""
Container signatures: the signature travels inside the signed document.

ContainerSigner is the seam the key service talks to. EnvelopeSigner is the
built-in implementation: a JSON envelope holding the document, a self-signed
certificate for the signer, and a PKCS#1 v1.5 signature over the document.
"""

import abc
import datetime
import json
import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from pydantic import ValidationError

from rsasign.common.errors import ErrorKind, Result
from rsasign.common.protocol import Envelope, format_validation_error
from rsasign.common.utils import base64_decode, base64_encode
from rsasign.crypto import digest as digests
from rsasign.crypto.keys import JsonKey, NativeBlob, decode, load_native_private
from rsasign.crypto.pki import cert_to_pem, create_self_signed_cert, load_cert, subject_info, verify_self_signed

logger = logging.getLogger(__name__)

ENVELOPE_FORMAT = "rsasign-envelope/1"


@dataclass
class ContainerVerification:
    success: bool = False           # the container could be inspected
    valid: bool = False             # the embedded signature holds
    signer_name: str | None = None
    signer_email: str | None = None
    signed_at: str | None = None
    message: str = ""
    document: bytes | None = None


class ContainerSigner(abc.ABC):

    @abc.abstractmethod
    def sign(self, document: bytes, private_key, full_name: str, email: str | None = None) -> Result:
        """Return Result[bytes] holding the signed container."""

    @abc.abstractmethod
    def verify(self, container: bytes) -> ContainerVerification:
        """Inspect a signed container."""


class EnvelopeSigner(ContainerSigner):

    def __init__(self, digest_algorithm="SHA256"):
        self.digest, _ = digests.select(digest_algorithm)

    def _private_key(self, private_key) -> Result:
        if isinstance(private_key, rsa.RSAPrivateKey):
            return Result.success(private_key)
        if not isinstance(private_key, (JsonKey, NativeBlob)):
            decoded = decode(private_key, expect_public=False)
            if not decoded.ok:
                return decoded
            private_key = decoded.value
        if isinstance(private_key, JsonKey):
            return Result.fail(
                ErrorKind.INVALID_KEY, "container signing needs a standard RSA private key, not a (d, n) key"
            )
        return load_native_private(private_key)

    def sign(self, document: bytes, private_key, full_name: str, email: str | None = None) -> Result:
        loaded = self._private_key(private_key)
        if not loaded.ok:
            return loaded
        key = loaded.value

        cert = create_self_signed_cert(key, full_name, email)
        try:
            signature = key.sign(document, padding.PKCS1v15(), self.digest.hash_algorithm())
        except (ValueError, UnsupportedAlgorithm) as e:
            return Result.fail(ErrorKind.INVALID_KEY, f"RSA signing failed: {e}")

        envelope = Envelope(
            format=ENVELOPE_FORMAT,
            document=base64_encode(document),
            certificate=cert_to_pem(cert),
            signature=base64_encode(signature),
            digest=self.digest.value,
            signed_at=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        )
        logger.info("Signed container for %s (%d bytes)", full_name, len(document))
        return Result.success(json.dumps(envelope.model_dump(by_alias=True)).encode())

    def verify(self, container: bytes) -> ContainerVerification:
        result = ContainerVerification()
        try:
            envelope = Envelope.model_validate_json(container)
        except ValidationError as e:
            result.message = f"Not a signed container: {format_validation_error(e)}"
            return result
        if envelope.format != ENVELOPE_FORMAT:
            result.message = f"Unsupported container format: {envelope.format}"
            return result

        try:
            document = base64_decode(envelope.document)
            signature = base64_decode(envelope.signature)
            cert = load_cert(envelope.certificate)
        except ValueError as e:
            result.message = f"Corrupt container: {e}"
            return result

        spec, recognized = digests.select(envelope.digest)
        if not recognized:
            result.message = f"Unsupported digest in container: {envelope.digest}"
            return result

        result.success = True
        result.document = document
        if not verify_self_signed(cert):
            result.message = "Signer certificate is invalid or expired"
            return result
        try:
            cert.public_key().verify(signature, document, padding.PKCS1v15(), spec.hash_algorithm())
        except InvalidSignature:
            current = base64_encode(digests.digest(document, spec))
            result.message = f"Signature does not match the document: current hash: {current}"
            return result

        result.valid = True
        result.signer_name, result.signer_email = subject_info(cert)
        result.signed_at = envelope.signed_at
        result.message = "Signature valid"
        return result
