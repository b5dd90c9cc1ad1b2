import pytest

from rsasign.common.errors import ErrorKind
from rsasign.crypto import sign as engine
from rsasign.crypto.sign import Verification
from rsasign.crypto.tamper import TamperVerdict, classify, classify_message, current_hash


@pytest.mark.parametrize("message,verdict", [
    ("Signature value is inconsistent with the key modulus", TamperVerdict.SIGNATURE_TAMPERED),
    ("signature is corrupt", TamperVerdict.SIGNATURE_TAMPERED),
    ("Signature does not match the document: current hash: abc=", TamperVerdict.CONTENT_TAMPERED),
    ("the file was modified", TamperVerdict.CONTENT_TAMPERED),
    ("Digest algorithm mismatch: signature was made with SHA1", TamperVerdict.DIGEST_MISMATCH),
    ("something else went wrong", TamperVerdict.UNDETERMINED),
    ("", TamperVerdict.UNDETERMINED),
])
def test_classify_message(message, verdict):
    assert classify_message(message) == verdict


def test_valid_is_not_tampered():
    assert classify(Verification(True, "Signature is valid")) == TamperVerdict.NOT_TAMPERED


def test_structural_errors_are_never_tampering():
    # wording that would otherwise read as content tampering
    verification = Verification(False, "hash field is missing", ErrorKind.MALFORMED_KEY)
    assert classify(verification) == TamperVerdict.MALFORMED


def test_current_hash_extracted(json_pair):
    signature = engine.sign(b"v1", json_pair.private_key).unwrap()
    verification = engine.verify(b"v2", signature, json_pair.public_key)
    assert current_hash(verification.diagnostic) == verification.current_hash
    assert current_hash("no hash here") is None
