import io
import json

from rsasign.common.errors import ErrorKind
from rsasign.common.protocol import (
    AutoSignRequest, ImportKeysRequest, KeyParamsRequest, SaveKeyPairRequest, UpdateKeyPairRequest,
)
from rsasign.crypto import sign as engine
from rsasign.services import keyring
from rsasign.storage.db import SignatureRecord, User

TOY_BUNDLE = {
    "signatureName": "Toy",
    "signatureType": "Manual",
    "publicKey": '{"e":"7","n":"143"}',
    "privateKey": '{"d":"103","n":"143"}',
    "p": "11",
    "q": "13",
    "e": "7",
    "d": "103",
}


def test_derive_ed():
    assert keyring.derive_ed("11", "13").value == {"e": "7", "d": "103"}


def test_generate_key_pair_from_params():
    result = keyring.generate_key_pair_from_params(KeyParamsRequest(p="11", q="13", e="7", d="103"))
    assert json.loads(result.value.public_key) == {"e": "7", "n": "143"}
    bad = keyring.generate_key_pair_from_params(KeyParamsRequest(p="11", q="13", e="7", d="101"))
    assert bad.kind == ErrorKind.INVALID_PARAMETERS


def test_sign_data_from_params(toy_pair):
    signature = keyring.sign_data_from_params(
        KeyParamsRequest(p="11", q="13", e="7", d="103", data="test")
    ).unwrap()
    assert engine.verify(b"test", signature, toy_pair.public_key).valid


def test_sign_data_requires_data_and_modulus():
    empty = keyring.sign_data_from_params(KeyParamsRequest(p="11", q="13", e="7", d="103"))
    assert empty.kind == ErrorKind.INVALID_PARAMETERS
    no_modulus = keyring.sign_data_from_params(KeyParamsRequest(e="7", d="103", data="x"))
    assert no_modulus.kind == ErrorKind.INVALID_PARAMETERS


def test_auto_sign():
    result = keyring.auto_sign(AutoSignRequest(data="hello", hash_algorithm="sha512")).unwrap()
    assert engine.verify(b"hello", result.signature, result.public_key, "SHA512").valid


def test_import_rejects_wrong_modulus():
    bundle = dict(TOY_BUNDLE, publicKey='{"e":"7","n":"150"}', privateKey='{"d":"103","n":"150"}')
    result = keyring.parse_key_bundle(json.dumps(bundle))
    assert result.kind == ErrorKind.INVALID_PARAMETERS


def test_parse_key_bundle_errors():
    assert keyring.parse_key_bundle("{not json").kind == ErrorKind.MALFORMED_KEY
    assert keyring.parse_key_bundle("[]").kind == ErrorKind.MALFORMED_KEY
    missing = {"publicKey": '{"e":"7","n":"143"}'}
    assert keyring.parse_key_bundle(json.dumps(missing)).kind == ErrorKind.MALFORMED_KEY
    mismatch = dict(TOY_BUNDLE, privateKey='{"d":"103","n":"187"}')
    assert keyring.parse_key_bundle(json.dumps(mismatch)).kind == ErrorKind.MODULUS_MISMATCH


def test_import_export_round_trip(memory_store):
    req = ImportKeysRequest(key_file_content=json.dumps(TOY_BUNDLE), user_id="1", signature_name="Mine")
    sign_id = keyring.import_keys(req).unwrap()
    record = memory_store.records[sign_id]
    assert record.n == "143"
    assert record.signature_type == "Imported"

    exported = json.loads(keyring.export_keys("1", sign_id).unwrap())
    assert exported["publicKey"] == TOY_BUNDLE["publicKey"]
    assert exported["signatureName"] == "Mine"
    assert exported["p"] == "11"
    assert exported["exportDate"]


def test_export_missing_record(memory_store):
    assert keyring.export_keys("1", "42").kind == ErrorKind.NOT_FOUND


def test_export_omits_empty_params(memory_store, native_pair):
    sign_id = keyring.save_key_pair(SaveKeyPairRequest(
        public_key=native_pair.public_key, private_key=native_pair.private_key, user_id="1",
    )).unwrap()
    exported = json.loads(keyring.export_keys("1", sign_id).unwrap())
    assert "p" not in exported and "d" not in exported


def test_save_rejects_mixed_forms(memory_store, toy_pair, native_pair):
    result = keyring.save_key_pair(SaveKeyPairRequest(
        public_key=toy_pair.public_key, private_key=native_pair.private_key, user_id="1",
    ))
    assert result.kind == ErrorKind.MALFORMED_KEY
    assert not memory_store.records


def test_update_key_pair(memory_store, toy_pair):
    sign_id = keyring.save_key_pair(SaveKeyPairRequest(
        public_key=toy_pair.public_key, private_key=toy_pair.private_key, user_id="1",
    )).unwrap()
    updated = keyring.update_key_pair(UpdateKeyPairRequest(
        public_key=toy_pair.public_key, private_key=toy_pair.private_key, user_id="1",
        sign_id=sign_id, signature_name="Renamed",
    ))
    assert updated.ok
    assert memory_store.records[sign_id].signature_name == "Renamed"

    missing = keyring.update_key_pair(UpdateKeyPairRequest(
        public_key=toy_pair.public_key, private_key=toy_pair.private_key, user_id="1", sign_id="99",
    ))
    assert missing.kind == ErrorKind.NOT_FOUND


def test_update_replaces_stored_parameters(memory_store, json_pair, params):
    req = ImportKeysRequest(key_file_content=json.dumps(TOY_BUNDLE), user_id="1", signature_name="Mine")
    sign_id = keyring.import_keys(req).unwrap()
    keyring.update_key_pair(UpdateKeyPairRequest(
        public_key=json_pair.public_key, private_key=json_pair.private_key, user_id="1", sign_id=sign_id,
    )).unwrap()

    record = memory_store.records[sign_id]
    assert record.d == str(params.d) and record.n == str(params.n)
    assert record.p is None and record.q is None

    signature = keyring.sign_file(io.BytesIO(b"rotated"), user_id="1", sign_id=sign_id).unwrap()
    assert keyring.verify_file(io.BytesIO(b"rotated"), signature, json_pair.public_key).valid


def test_import_rejects_exponents_that_disagree_with_keys(memory_store):
    bundle = dict(TOY_BUNDLE, d="5")
    req = ImportKeysRequest(key_file_content=json.dumps(bundle), user_id="1", signature_name="Mine")
    result = keyring.import_keys(req)
    assert result.kind == ErrorKind.INVALID_PARAMETERS
    assert not memory_store.records


def test_save_takes_parameters_from_keys(memory_store, toy_pair):
    sign_id = keyring.save_key_pair(SaveKeyPairRequest(
        public_key=toy_pair.public_key, private_key=toy_pair.private_key, user_id="1",
    )).unwrap()
    record = memory_store.records[sign_id]
    assert (record.e, record.d, record.n) == ("7", "103", "143")


def test_record_signs_with_key_text(memory_store, json_pair):
    record = SignatureRecord(user_id="1", public_key=json_pair.public_key, private_key=json_pair.private_key,
                             e="7", d="5", n="143", id="1")
    memory_store.records["1"] = record
    signature = keyring.sign_file(io.BytesIO(b"doc"), user_id="1", sign_id="1").unwrap()
    assert keyring.verify_file(io.BytesIO(b"doc"), signature, json_pair.public_key).valid


def test_save_rejects_exponents_below_floor(memory_store):
    result = keyring.save_key_pair(SaveKeyPairRequest(
        public_key='{"e":"1","n":"143"}', private_key='{"d":"1","n":"143"}', user_id="1", p="11", q="13",
    ))
    assert result.kind == ErrorKind.INVALID_KEY


def test_sign_file_with_record(memory_store, toy_pair):
    req = ImportKeysRequest(key_file_content=json.dumps(TOY_BUNDLE), user_id="1", signature_name="Mine")
    sign_id = keyring.import_keys(req).unwrap()
    signature = keyring.sign_file(io.BytesIO(b"test"), user_id="1", sign_id=sign_id).unwrap()
    verification = keyring.verify_file(io.BytesIO(b"test"), signature, toy_pair.public_key)
    assert verification.valid


def test_sign_file_key_sources(native_pair, toy_pair):
    by_key = keyring.sign_file(io.BytesIO(b"doc"), private_key=native_pair.private_key).unwrap()
    assert keyring.verify_file(io.BytesIO(b"doc"), by_key, native_pair.public_key).valid
    by_nd = keyring.sign_file(io.BytesIO(b"doc"), n="143", d="103").unwrap()
    assert keyring.verify_file(io.BytesIO(b"doc"), by_nd, toy_pair.public_key).valid
    assert keyring.sign_file(io.BytesIO(b"doc")).kind == ErrorKind.INVALID_PARAMETERS


def test_sign_file_unknown_record(memory_store):
    result = keyring.sign_file(io.BytesIO(b"doc"), user_id="1", sign_id="7")
    assert result.kind == ErrorKind.NOT_FOUND


def test_verify_file_requires_key():
    verification = keyring.verify_file(io.BytesIO(b"doc"), "AQ==", "")
    assert verification.error == ErrorKind.MALFORMED_KEY


def test_verification_report(json_pair):
    signature = engine.sign(b"v1", json_pair.private_key).unwrap()
    report = keyring.verification_report(engine.verify(b"v2", signature, json_pair.public_key))
    assert report["valid"] is False
    assert report["error"] == "VerificationFailed"
    assert report["verdict"] == "ContentTampered"
    assert report["currentHash"]


def test_sign_container_with_stored_key(memory_store):
    sign_id = keyring.generate_native_keys("1").unwrap().sign_id
    memory_store.users["1"] = User(id="1", username="ada", email="ada@example.com", full_name="Ada Lovelace")

    container = keyring.sign_container(b"contract", "1", sign_id).unwrap()
    assert memory_store.document_hashes[sign_id]
    outcome = keyring.verify_container(container)
    assert outcome.valid
    assert outcome.signer_name == "Ada Lovelace"


def test_sign_container_needs_user(memory_store):
    sign_id = keyring.generate_native_keys("1").unwrap().sign_id
    assert keyring.sign_container(b"contract", "1", sign_id).kind == ErrorKind.NOT_FOUND
