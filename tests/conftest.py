import itertools

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from rsasign.common.errors import ErrorKind, Result
from rsasign.crypto import keys
from rsasign.crypto.algebra import KeyParameters
from rsasign.storage import db


@pytest.fixture(scope="session")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def params(private_key):
    numbers = private_key.private_numbers()
    return KeyParameters(
        e=numbers.public_numbers.e,
        d=numbers.d,
        n=numbers.public_numbers.n,
        p=numbers.p,
        q=numbers.q,
    )


@pytest.fixture(scope="session")
def json_pair(params):
    return keys.encode_pair(params)


@pytest.fixture(scope="session")
def native_pair(private_key):
    return keys.encode_native_pair(private_key)


@pytest.fixture
def toy_pair():
    """p=11, q=13, e=7, d=103."""
    return keys.encode_pair(KeyParameters(e=7, d=103, n=143, p=11, q=13))


class MemoryStore:
    def __init__(self):
        self.records = {}
        self.users = {}
        self.document_hashes = {}
        self._ids = itertools.count(1)

    def save_key_record(self, record):
        record.id = str(next(self._ids))
        self.records[record.id] = record
        return Result.success(record.id)

    def get_key_record(self, user_id, sign_id):
        record = self.records.get(str(sign_id))
        if record is None or record.user_id != user_id:
            return None
        return record

    def update_key_record(self, record):
        if self.get_key_record(record.user_id, record.id) is None:
            return Result.fail(ErrorKind.NOT_FOUND, "no signature record was updated")
        self.records[record.id] = record
        return Result.success(record.id)

    def get_user(self, user_id):
        return self.users.get(user_id)

    def set_document_hash(self, sign_id, document_hash):
        self.document_hashes[sign_id] = document_hash


@pytest.fixture
def memory_store(monkeypatch):
    store = MemoryStore()
    for name in ("save_key_record", "get_key_record", "update_key_record", "get_user", "set_document_hash"):
        monkeypatch.setattr(db, name, getattr(store, name))
    return store
