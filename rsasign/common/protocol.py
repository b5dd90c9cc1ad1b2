"""Request and bundle models using Pydantic."""

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator
from typing import Annotated
import json
import re

# Email regex (basic)
EMAIL_REGEX = r"^[^@]+@[^@]+\.[^@]+$"
DECIMAL_REGEX = re.compile(r"^[0-9]+$")


def _decimal_or_empty(v):
    if v is None:
        return ""
    if isinstance(v, int) and not isinstance(v, bool):
        v = str(v)
    if not isinstance(v, str):
        raise ValueError("must be a decimal string")
    v = v.strip()
    if v and not DECIMAL_REGEX.match(v):
        raise ValueError("must contain only decimal digits")
    return v


DecimalText = Annotated[str, BeforeValidator(_decimal_or_empty)]


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=32)
    email: str = Field(..., pattern=EMAIL_REGEX)
    full_name: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=6)

    @field_validator('username')
    @classmethod
    def username_alphanumeric(cls, v):
        if not re.fullmatch(r'[a-zA-Z0-9_]+', v):
            raise ValueError('username must be alphanumeric with underscores')
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class GenerateEDRequest(BaseModel):
    p: str
    q: str

    @field_validator('p', 'q', mode='before')
    @classmethod
    def required_decimal(cls, v):
        v = _decimal_or_empty(v)
        if not v:
            raise ValueError("is required")
        return v


class KeyParamsRequest(BaseModel):
    """Manual parameters: (p, q, e, d) or (n, e, d), plus optional data to sign."""
    p: DecimalText = ""
    q: DecimalText = ""
    e: DecimalText
    d: DecimalText
    n: DecimalText = ""
    data: str = ""
    hash_algorithm: str = "SHA256"
    signature_name: str = ""
    user_id: str = ""


class AutoSignRequest(BaseModel):
    data: str = Field(..., min_length=1)
    key_size: int = Field(2048, ge=2048, le=8192)
    signature_name: str = ""
    signature_type: str = "Auto"
    user_id: str = ""
    hash_algorithm: str = "SHA256"


class SaveKeyPairRequest(BaseModel):
    public_key: str = Field(..., min_length=1)
    private_key: str = Field(..., min_length=1)
    signature_name: str = ""
    signature_type: str = "RSA"
    user_id: str
    p: DecimalText = ""
    q: DecimalText = ""
    e: DecimalText = ""
    d: DecimalText = ""


class UpdateKeyPairRequest(SaveKeyPairRequest):
    sign_id: str = Field(..., min_length=1)


class KeyExportBundle(BaseModel):
    """Portable key file: camelCase on the wire, snake_case in code."""
    model_config = ConfigDict(populate_by_name=True)

    signature_name: str = Field("Exported Signature", alias="signatureName")
    signature_type: str = Field("Manual", alias="signatureType")
    export_date: str = Field("", alias="exportDate")
    public_key: str = Field(..., min_length=1, alias="publicKey")
    private_key: str = Field(..., min_length=1, alias="privateKey")
    p: DecimalText = ""
    q: DecimalText = ""
    e: DecimalText = ""
    d: DecimalText = ""

    def to_json(self) -> str:
        data = self.model_dump(by_alias=True)
        for name in ("p", "q", "e", "d"):
            if not data[name]:
                del data[name]
        return json.dumps(data, indent=2)


class ImportKeysRequest(BaseModel):
    key_file_content: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    signature_name: str = Field(..., min_length=1)
    signature_type: str = "Imported"


class Envelope(BaseModel):
    """Signed container: document plus embedded certificate and signature."""
    model_config = ConfigDict(populate_by_name=True)

    format: str
    document: str               # base64 document bytes
    certificate: str            # PEM signer certificate
    signature: str              # base64 PKCS#1 v1.5 signature
    digest: str = "SHA256"
    signed_at: str = Field(..., alias="signedAt")


def format_validation_error(exc: ValidationError) -> str:
    """Collapse a pydantic error into one line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "input"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
