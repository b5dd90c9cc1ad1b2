import pytest

from rsasign.common import utils


def test_int_to_bytes_is_minimal():
    assert utils.int_to_bytes(0) == b"\x00"
    assert utils.int_to_bytes(255) == b"\xff"
    assert utils.int_to_bytes(256) == b"\x01\x00"
    with pytest.raises(ValueError):
        utils.int_to_bytes(-1)


def test_base64_int_round_trip():
    value = 2**2047 + 12345
    assert utils.base64_to_int(utils.int_to_base64(value)) == value


def test_base64_decode_rejects_garbage():
    with pytest.raises(ValueError):
        utils.base64_decode("not base64!")
    with pytest.raises(ValueError):
        utils.base64_decode("")


def test_base64_decode_ignores_whitespace():
    assert utils.base64_decode("AAEC\nAwQ=") == bytes([0, 1, 2, 3, 4])


def test_parse_decimal():
    assert utils.parse_decimal(" 0143 ") == 143
    assert utils.parse_decimal(7) == 7
    for bad in ("-5", "+5", "1e3", "", "0x10", True, None):
        with pytest.raises(ValueError):
            utils.parse_decimal(bad)


def test_short():
    assert utils.short("abc") == "abc"
    assert utils.short("a" * 30, 5) == "aaaaa..."
