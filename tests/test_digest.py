import hashlib
import io

from rsasign.crypto import digest
from rsasign.crypto.digest import DigestSpec


def test_select_is_case_insensitive():
    assert digest.select("sha512") == (DigestSpec.SHA512, True)
    assert digest.select("Md5") == (DigestSpec.MD5, True)
    assert digest.select("SHA-1") == (DigestSpec.SHA1, True)


def test_unknown_names_fall_back_detectably():
    assert digest.select("whirlpool") == (DigestSpec.SHA256, False)
    assert digest.select(None) == (DigestSpec.SHA256, False)
    assert digest.select("") == (DigestSpec.SHA256, False)


def test_digest_values():
    assert digest.digest(b"abc", "SHA256") == hashlib.sha256(b"abc").digest()
    assert len(digest.digest(b"abc", "SHA512")) == 64
    assert len(digest.digest(b"abc", "MD5")) == 16


def test_stream_matches_buffer():
    data = bytes(range(256)) * 1000
    stream = io.BytesIO(data)
    assert digest.digest_stream(stream, "SHA1", chunk_size=4096) == hashlib.sha1(data).digest()


def test_digest_all_single_pass():
    data = b"x" * 200000
    result = digest.digest_all(io.BytesIO(data))
    assert result[DigestSpec.SHA512] == hashlib.sha512(data).digest()
    assert set(result) == set(DigestSpec)


def test_str_messages_are_utf8():
    assert digest.digest_message("héllo") == hashlib.sha256("héllo".encode("utf-8")).digest()
