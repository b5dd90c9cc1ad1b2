"""
Best-effort tamper classification for failed verifications.

This is a keyword heuristic over the diagnostic text, not forensics: RSA
cannot tell a modified document from a modified signature. Structured
errors (malformed key or signature) are never reported as tampering.
"""

import re
from enum import Enum

from rsasign.common.errors import ErrorKind

_CONTENT_RE = re.compile(r"\b(hash|digest|checksum|modified|changed)\b", re.IGNORECASE)
_SIGNATURE_RE = re.compile(r"signature (value )?(is )?(inconsistent|invalid|corrupt)", re.IGNORECASE)
_CURRENT_HASH_RE = re.compile(r"current hash:?\s*([A-Za-z0-9+/=]+)", re.IGNORECASE)


class TamperVerdict(str, Enum):
    NOT_TAMPERED = "NotTampered"
    MALFORMED = "Malformed"
    SIGNATURE_TAMPERED = "SignatureTampered"
    CONTENT_TAMPERED = "ContentTampered"
    DIGEST_MISMATCH = "DigestMismatch"
    UNDETERMINED = "Undetermined"


def classify_message(message: str) -> TamperVerdict:
    """Classify a verification failure message by its wording alone."""
    if not message:
        return TamperVerdict.UNDETERMINED
    if "algorithm mismatch" in message.lower():
        return TamperVerdict.DIGEST_MISMATCH
    if _SIGNATURE_RE.search(message):
        return TamperVerdict.SIGNATURE_TAMPERED
    if _CONTENT_RE.search(message):
        return TamperVerdict.CONTENT_TAMPERED
    return TamperVerdict.UNDETERMINED


def classify(verification) -> TamperVerdict:
    if verification.valid:
        return TamperVerdict.NOT_TAMPERED
    if verification.error is not None and verification.error != ErrorKind.VERIFICATION_FAILED:
        return TamperVerdict.MALFORMED
    if getattr(verification, "detected_digest", None) is not None:
        return TamperVerdict.DIGEST_MISMATCH
    return classify_message(verification.diagnostic)


def current_hash(message: str) -> str | None:
    """Pull the recomputed document hash out of a mismatch diagnostic."""
    match = _CURRENT_HASH_RE.search(message or "")
    return match.group(1) if match else None
