import datetime

from rsasign.crypto import pki


def test_self_signed_cert(private_key):
    cert = pki.create_self_signed_cert(private_key, "Ada Lovelace", "ada@example.com", days=30)
    assert pki.verify_self_signed(cert)
    assert pki.subject_info(cert) == ("Ada Lovelace", "ada@example.com")
    assert cert.public_key().public_numbers() == private_key.public_key().public_numbers()


def test_pem_round_trip(private_key):
    cert = pki.create_self_signed_cert(private_key, "Signer")
    loaded = pki.load_cert(pki.cert_to_pem(cert))
    assert loaded == cert
    assert pki.subject_info(loaded) == ("Signer", None)


def test_expired_cert_rejected(private_key):
    cert = pki.create_self_signed_cert(private_key, "Signer", days=1)
    later = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=5)
    assert not pki.verify_self_signed(cert, at=later)
