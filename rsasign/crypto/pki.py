"""X.509 helpers: self-signed signer certificates, validity and subject."""

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.exceptions import InvalidSignature
import datetime

from rsasign.common import config


def build_subject(full_name: str, email: str | None = None) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, full_name)]
    if email:
        attributes.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, email))
    return x509.Name(attributes)


def create_self_signed_cert(private_key: rsa.RSAPrivateKey, full_name: str,
                            email: str | None = None, days: int | None = None) -> x509.Certificate:
    """
    Issue a self-signed certificate for a signing key.
    Valid from one day ago, for `days` (default RSASIGN_CERT_DAYS) days.
    """
    days = days or config.CERT_DAYS
    subject = issuer = build_subject(full_name, email)
    now = datetime.datetime.now(datetime.timezone.utc)

    return x509.CertificateBuilder().subject_name(subject).issuer_name(issuer).public_key(
        private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - datetime.timedelta(days=1)
    ).not_valid_after(
        now + datetime.timedelta(days=days)
    ).add_extension(
        x509.BasicConstraints(ca=False, path_length=None), critical=False
    ).add_extension(
        x509.KeyUsage(
            digital_signature=True, content_commitment=False, key_encipherment=True,
            data_encipherment=False, key_agreement=False, key_cert_sign=False,
            crl_sign=False, encipher_only=False, decipher_only=False
        ), critical=True
    ).sign(private_key, hashes.SHA256())


def cert_to_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def load_cert(cert_pem) -> x509.Certificate:
    if isinstance(cert_pem, str):
        cert_pem = cert_pem.encode("ascii")
    return x509.load_pem_x509_certificate(cert_pem)


def verify_self_signed(cert: x509.Certificate, at: datetime.datetime | None = None) -> bool:
    """
    Validate a self-signed signer certificate:
    - Its signature verifies under its own public key
    - It is valid at `at` (default: now)
    """
    try:
        cert.public_key().verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            cert.signature_hash_algorithm
        )
    except InvalidSignature:
        return False

    now = at or datetime.datetime.now(datetime.timezone.utc)
    if cert.not_valid_before_utc > now or cert.not_valid_after_utc < now:
        return False
    return True


def subject_info(cert: x509.Certificate) -> tuple[str | None, str | None]:
    """Return (common name, e-mail) from the certificate subject."""
    cn = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    email = cert.subject.get_attributes_for_oid(NameOID.EMAIL_ADDRESS)
    return (cn[0].value if cn else None, email[0].value if email else None)
