"""Error kinds and the Result type returned by engine operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_PARAMETERS = "InvalidParameters"
    MALFORMED_KEY = "MalformedKey"
    MODULUS_MISMATCH = "ModulusMismatch"
    INVALID_KEY = "InvalidKey"
    SIGNATURE_MALFORMED = "SignatureMalformed"
    VERIFICATION_FAILED = "VerificationFailed"
    # record store / service level
    NOT_FOUND = "NotFound"
    STORAGE = "Storage"


class EngineError(Exception):
    """Raised by Result.unwrap() for callers that prefer exceptions."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an engine call: either a value or a Failure.

    Engine code returns these instead of raising so that every caller has
    to branch on the outcome explicitly.
    """

    value: Any = None
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise EngineError(self.error.kind, self.error.message)
        return self.value

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result":
        return cls(error=Failure(kind, message))

    def __bool__(self) -> bool:
        return self.ok
