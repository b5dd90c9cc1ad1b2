"""Command-line front-end: python -m rsasign.cli <command> ..."""

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from rsasign.common import config
from rsasign.common.errors import Result
from rsasign.common.protocol import (
    GenerateEDRequest, ImportKeysRequest, KeyParamsRequest, LoginRequest,
    RegisterRequest, format_validation_error,
)
from rsasign.crypto import keys
from rsasign.services import keyring
from rsasign.storage import db

logger = logging.getLogger("rsasign")


def _emit(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _fail(result: Result) -> int:
    _emit({"error": result.kind.value if result.kind else "Error", "message": result.message})
    return 1


def _read_text(value: str) -> str:
    """Literal text, or the contents of a file when prefixed with '@'."""
    if value.startswith("@"):
        with open(value[1:], "r") as f:
            return f.read().strip()
    return value


def cmd_derive_ed(args) -> int:
    req = GenerateEDRequest(p=args.p, q=args.q)
    result = keyring.derive_ed(req.p, req.q)
    if not result.ok:
        return _fail(result)
    _emit(result.value)
    return 0


def cmd_gen_params(args) -> int:
    result = keyring.generate_params(args.bits)
    if not result.ok:
        return _fail(result)
    params = result.value
    pair = keys.encode_pair(params)
    _emit({**params.as_strings(), "publicKey": pair.public_key, "privateKey": pair.private_key})
    return 0


def cmd_build_key(args) -> int:
    req = KeyParamsRequest(p=args.p or "", q=args.q or "", e=args.e, d=args.d, n=args.n or "")
    result = keyring.generate_key_pair_from_params(req)
    if not result.ok:
        return _fail(result)
    _emit({"publicKey": result.value.public_key, "privateKey": result.value.private_key})
    return 0


def cmd_sign(args) -> int:
    with open(args.file, "rb") as f:
        result = keyring.sign_file(
            f, user_id=args.user or "", sign_id=args.sign_id or "", hash_algorithm=args.digest,
            private_key=_read_text(args.key) if args.key else "",
        )
    if not result.ok:
        return _fail(result)
    _emit({"signature": result.value, "file": args.file, "digest": args.digest})
    return 0


def cmd_verify(args) -> int:
    with open(args.file, "rb") as f:
        verification = keyring.verify_file(f, _read_text(args.signature), _read_text(args.key), args.digest)
    _emit(keyring.verification_report(verification))
    return 0 if verification.valid else 2


def cmd_sign_container(args) -> int:
    with open(args.file, "rb") as f:
        document = f.read()
    result = keyring.sign_container(document, args.user, args.sign_id)
    if not result.ok:
        return _fail(result)
    with open(args.output, "wb") as f:
        f.write(result.value)
    _emit({"container": args.output})
    return 0


def cmd_verify_container(args) -> int:
    with open(args.file, "rb") as f:
        outcome = keyring.verify_container(f.read())
    _emit({
        "success": outcome.success,
        "valid": outcome.valid,
        "signerName": outcome.signer_name,
        "signerEmail": outcome.signer_email,
        "signedAt": outcome.signed_at,
        "message": outcome.message,
    })
    return 0 if outcome.valid else 2


def cmd_import(args) -> int:
    with open(args.file, "r") as f:
        content = f.read()
    req = ImportKeysRequest(key_file_content=content, user_id=args.user,
                            signature_name=args.name, signature_type=args.type)
    result = keyring.import_keys(req)
    if not result.ok:
        return _fail(result)
    _emit({"signId": result.value})
    return 0


def cmd_export(args) -> int:
    result = keyring.export_keys(args.user, args.sign_id)
    if not result.ok:
        return _fail(result)
    print(result.value)
    return 0


def cmd_register(args) -> int:
    req = RegisterRequest(username=args.username, email=args.email, full_name=args.full_name,
                          password=args.password)
    result = db.register_user(req.username, req.email, req.full_name, req.password)
    if not result.ok:
        return _fail(result)
    _emit({"userId": result.value})
    return 0


def cmd_login(args) -> int:
    req = LoginRequest(username=args.username, password=args.password)
    user_id = db.verify_login(req.username, req.password)
    if user_id is None:
        _emit({"error": "Unauthorized", "message": "wrong username or password"})
        return 1
    _emit({"userId": user_id})
    return 0


def cmd_init_db(args) -> int:
    db.init_db()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rsasign", description="RSA key management and signing")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("derive-ed", help="choose e and compute d from primes p, q")
    p.add_argument("p")
    p.add_argument("q")
    p.set_defaults(func=cmd_derive_ed)

    p = sub.add_parser("gen-params", help="generate p, q, e, d")
    p.add_argument("--bits", type=int, default=config.MIN_KEY_SIZE)
    p.set_defaults(func=cmd_gen_params)

    p = sub.add_parser("build-key", help="validate parameters and emit a JSON key pair")
    p.add_argument("--p")
    p.add_argument("--q")
    p.add_argument("--n")
    p.add_argument("--e", required=True)
    p.add_argument("--d", required=True)
    p.set_defaults(func=cmd_build_key)

    p = sub.add_parser("sign", help="detached signature of a file")
    p.add_argument("file")
    p.add_argument("--key", help="private key text or @path")
    p.add_argument("--user")
    p.add_argument("--sign-id")
    p.add_argument("--digest", default=config.DEFAULT_DIGEST)
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("verify", help="verify a detached signature")
    p.add_argument("file")
    p.add_argument("--signature", required=True, help="base64 signature or @path")
    p.add_argument("--key", required=True, help="public key text or @path")
    p.add_argument("--digest", default=config.DEFAULT_DIGEST)
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("sign-container", help="embed a signature in a container")
    p.add_argument("file")
    p.add_argument("--user", required=True)
    p.add_argument("--sign-id", required=True)
    p.add_argument("--output", required=True)
    p.set_defaults(func=cmd_sign_container)

    p = sub.add_parser("verify-container", help="verify a signed container")
    p.add_argument("file")
    p.set_defaults(func=cmd_verify_container)

    p = sub.add_parser("import", help="import a key file")
    p.add_argument("file")
    p.add_argument("--user", required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--type", default="Imported")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("export", help="export a stored key pair")
    p.add_argument("--user", required=True)
    p.add_argument("--sign-id", required=True)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("register", help="create a user")
    p.add_argument("username")
    p.add_argument("--email", required=True)
    p.add_argument("--full-name", required=True)
    p.add_argument("--password", required=True)
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("login", help="check user credentials")
    p.add_argument("username")
    p.add_argument("--password", required=True)
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("init-db", help="create database tables")
    p.set_defaults(func=cmd_init_db)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s",
                        stream=sys.stderr)
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValidationError as e:
        _emit({"error": "InvalidRequest", "message": format_validation_error(e)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
