"""MySQL store: users (salted SHA-256 passwords) and signature key records."""

import pymysql
import pymysql.cursors
import datetime
import hashlib
import hmac
import logging
import secrets
import sys
from dataclasses import dataclass, field

from rsasign.common.config import DB_CONFIG, DB_NAME
from rsasign.common.errors import ErrorKind, Result
from rsasign.common.utils import base64_encode

logger = logging.getLogger(__name__)

RECORD_COLUMNS = (
    "id", "user_id", "signature_name", "signature_type", "public_key", "private_key",
    "p", "q", "e", "d", "n", "document_hash", "is_active", "created_at", "updated_at",
)


@dataclass
class SignatureRecord:
    user_id: str
    public_key: str
    private_key: str
    signature_name: str = ""
    signature_type: str = "RSA"
    p: str | None = None
    q: str | None = None
    e: str | None = None
    d: str | None = None
    n: str | None = None
    document_hash: str | None = None
    is_active: bool = True
    id: str | None = None
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> "SignatureRecord":
        values = {name: row.get(name) for name in RECORD_COLUMNS}
        values["id"] = str(values["id"]) if values["id"] is not None else None
        values["user_id"] = str(values["user_id"])
        values["is_active"] = bool(values["is_active"])
        return cls(**values)

    @property
    def has_manual_params(self) -> bool:
        return bool(self.e and self.d and self.n)


@dataclass
class User:
    id: str
    username: str
    email: str
    full_name: str
    created_at: datetime.datetime | None = field(default=None)


def get_connection():
    """Return a new MySQL connection."""
    return pymysql.connect(**DB_CONFIG)


def _hash_password(salt_b64: str, password: str) -> str:
    return hashlib.sha256(salt_b64.encode() + password.encode()).hexdigest()


def init_db():
    """Create database, users and signatures tables."""
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"CREATE DATABASE IF NOT EXISTS `{DB_NAME}`")
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INT AUTO_INCREMENT PRIMARY KEY,
                    username VARCHAR(32) UNIQUE NOT NULL,
                    email VARCHAR(255) UNIQUE NOT NULL,
                    full_name VARCHAR(128) NOT NULL,
                    pwd_hash VARCHAR(64) NOT NULL,
                    salt VARCHAR(24) NOT NULL,
                    created_at DATETIME NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS signatures (
                    id INT AUTO_INCREMENT PRIMARY KEY,
                    user_id INT NOT NULL,
                    signature_name VARCHAR(255) NOT NULL DEFAULT '',
                    signature_type VARCHAR(32) NOT NULL DEFAULT 'RSA',
                    public_key MEDIUMTEXT NOT NULL,
                    private_key MEDIUMTEXT NOT NULL,
                    p TEXT NULL,
                    q TEXT NULL,
                    e TEXT NULL,
                    d TEXT NULL,
                    n TEXT NULL,
                    document_hash VARCHAR(128) NULL,
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at DATETIME NOT NULL,
                    updated_at DATETIME NULL,
                    INDEX (user_id),
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                )
            """)
        logger.info("Database '%s' and tables initialized", DB_NAME)
    finally:
        conn.close()


def register_user(username: str, email: str, full_name: str, password: str) -> Result:
    """Store a new user with a random salt. Returns Result[user id]."""
    salt_b64 = base64_encode(secrets.token_bytes(16))
    pwd_hash = _hash_password(salt_b64, password)

    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                "INSERT INTO users (username, email, full_name, pwd_hash, salt, created_at) "
                "VALUES (%s, %s, %s, %s, %s, %s)",
                (username, email, full_name, pwd_hash, salt_b64, _now())
            )
            return Result.success(str(cur.lastrowid))
    except pymysql.err.IntegrityError:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "username or email already exists")
    except pymysql.MySQLError as e:
        logger.error("Register failed: %s", e)
        return Result.fail(ErrorKind.STORAGE, f"register failed: {e}")
    finally:
        conn.close()


def verify_login(username: str, password: str) -> str | None:
    """Verify login. Returns user id or None."""
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute("SELECT id, pwd_hash, salt FROM users WHERE username = %s", (username,))
            result = cur.fetchone()
            if result and hmac.compare_digest(result[1], _hash_password(result[2], password)):
                return str(result[0])
        return None
    finally:
        conn.close()


def get_user(user_id: str) -> User | None:
    conn = get_connection()
    try:
        with conn.cursor(pymysql.cursors.DictCursor) as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                "SELECT id, username, email, full_name, created_at FROM users WHERE id = %s",
                (user_id,)
            )
            row = cur.fetchone()
            if not row:
                return None
            return User(id=str(row["id"]), username=row["username"], email=row["email"],
                        full_name=row["full_name"], created_at=row.get("created_at"))
    finally:
        conn.close()


def save_key_record(record: SignatureRecord) -> Result:
    """Insert a signature record. Returns Result[record id]."""
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                "INSERT INTO signatures (user_id, signature_name, signature_type, public_key, "
                "private_key, p, q, e, d, n, is_active, created_at) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                (record.user_id, record.signature_name, record.signature_type, record.public_key,
                 record.private_key, record.p, record.q, record.e, record.d, record.n,
                 record.is_active, _now())
            )
            return Result.success(str(cur.lastrowid))
    except pymysql.MySQLError as e:
        logger.error("Saving key record failed: %s", e)
        return Result.fail(ErrorKind.STORAGE, f"saving keys failed: {e}")
    finally:
        conn.close()


def update_key_record(record: SignatureRecord) -> Result:
    """Replace the keys and parameters of record.id, owned by record.user_id."""
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            affected = cur.execute(
                "UPDATE signatures SET public_key = %s, private_key = %s, signature_name = %s, "
                "signature_type = %s, p = %s, q = %s, e = %s, d = %s, n = %s, updated_at = %s "
                "WHERE id = %s AND user_id = %s",
                (record.public_key, record.private_key, record.signature_name, record.signature_type,
                 record.p, record.q, record.e, record.d, record.n, _now(), record.id, record.user_id)
            )
            if not affected:
                return Result.fail(ErrorKind.NOT_FOUND, "no signature record was updated")
            return Result.success(record.id)
    except pymysql.MySQLError as e:
        logger.error("Updating key record failed: %s", e)
        return Result.fail(ErrorKind.STORAGE, f"updating keys failed: {e}")
    finally:
        conn.close()


def get_key_record(user_id: str, sign_id: str) -> SignatureRecord | None:
    conn = get_connection()
    try:
        with conn.cursor(pymysql.cursors.DictCursor) as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                f"SELECT {', '.join(RECORD_COLUMNS)} FROM signatures WHERE id = %s AND user_id = %s",
                (sign_id, user_id)
            )
            row = cur.fetchone()
            return SignatureRecord.from_row(row) if row else None
    finally:
        conn.close()


def list_key_records(user_id: str) -> list[SignatureRecord]:
    conn = get_connection()
    try:
        with conn.cursor(pymysql.cursors.DictCursor) as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                f"SELECT {', '.join(RECORD_COLUMNS)} FROM signatures WHERE user_id = %s "
                "ORDER BY created_at DESC",
                (user_id,)
            )
            return [SignatureRecord.from_row(row) for row in cur.fetchall()]
    finally:
        conn.close()


def delete_key_record(user_id: str, sign_id: str) -> bool:
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            affected = cur.execute(
                "DELETE FROM signatures WHERE id = %s AND user_id = %s", (sign_id, user_id)
            )
            return bool(affected)
    finally:
        conn.close()


def set_document_hash(sign_id: str, document_hash: str) -> None:
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE `{DB_NAME}`")
            cur.execute(
                "UPDATE signatures SET document_hash = %s WHERE id = %s", (document_hash, sign_id)
            )
    finally:
        conn.close()


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# CLI support for --init
if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--init":
        logging.basicConfig(level=logging.INFO)
        init_db()
