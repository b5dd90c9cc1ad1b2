import json

from rsasign import cli


def _run(capsys, argv):
    code = cli.main(argv)
    return code, capsys.readouterr().out


def test_derive_ed(capsys):
    code, out = _run(capsys, ["derive-ed", "11", "13"])
    assert code == 0
    assert json.loads(out) == {"e": "7", "d": "103"}


def test_derive_ed_rejects_bad_input(capsys):
    code, out = _run(capsys, ["derive-ed", "eleven", "13"])
    assert code == 1
    assert json.loads(out)["error"] == "InvalidRequest"


def test_build_key_invalid(capsys):
    code, out = _run(capsys, ["build-key", "--p", "11", "--q", "13", "--e", "7", "--d", "101"])
    assert code == 1
    assert json.loads(out)["error"] == "InvalidParameters"


def test_gen_params_too_small(capsys):
    code, out = _run(capsys, ["gen-params", "--bits", "512"])
    assert code == 1
    assert json.loads(out)["error"] == "InvalidParameters"


def test_sign_then_verify(tmp_path, capsys):
    document = tmp_path / "doc.txt"
    document.write_bytes(b"test")
    code, out = _run(capsys, ["gen-params", "--bits", "2048"])
    assert code == 0
    generated = json.loads(out)
    private_key = tmp_path / "private.json"
    private_key.write_text(generated["privateKey"])
    public_key = generated["publicKey"]

    code, out = _run(capsys, ["sign", str(document), "--key", f"@{private_key}", "--digest", "SHA256"])
    assert code == 0
    signature = json.loads(out)["signature"]

    code, out = _run(capsys, ["verify", str(document), "--signature", signature, "--key", public_key])
    assert code == 0
    assert json.loads(out)["valid"] is True

    document.write_bytes(b"tset")
    code, out = _run(capsys, ["verify", str(document), "--signature", signature, "--key", public_key])
    report = json.loads(out)
    assert code == 2
    assert report["valid"] is False
    assert report["error"] == "VerificationFailed"
