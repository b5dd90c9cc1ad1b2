"""
RSA parameter algebra: modular arithmetic, primality and key validation.

All arithmetic is exact integer arithmetic. Nothing here is constant-time;
the square-and-multiply loop leaks the exponent through timing.
"""

import secrets
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import rsa

from rsasign.common import config
from rsasign.common.errors import ErrorKind, Result
from rsasign.common.utils import parse_decimal

# Public exponent tried first; then 3, 5, 7, ...
DEFAULT_E = 65537

# Fixed value encrypted and decrypted by the trial round-trip check.
TRIAL_SENTINEL = 2

# Numeric floor for n, e and d on the manual path.
MIN_COMPONENT = 3

_SMALL_PRIMES = [2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47]
_MR_BASES = [2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37]


@dataclass(frozen=True)
class KeyParameters:
    e: int
    d: int
    n: int
    p: int | None = None
    q: int | None = None

    @property
    def phi(self) -> int | None:
        if self.p is None or self.q is None:
            return None
        return (self.p - 1) * (self.q - 1)

    def as_strings(self) -> dict:
        """Decimal string form, omitting absent primes."""
        out = {"e": str(self.e), "d": str(self.d), "n": str(self.n)}
        if self.p is not None:
            out["p"] = str(self.p)
        if self.q is not None:
            out["q"] = str(self.q)
        return out


def gcd(a: int, b: int) -> int:
    while b:
        a, b = b, a % b
    return abs(a)


def extended_gcd(a: int, b: int) -> tuple[int, int, int]:
    """Return (g, x, y) with a*x + b*y == g == gcd(a, b)."""
    old_r, r = a, b
    old_x, x = 1, 0
    old_y, y = 0, 1
    while r:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_x, x = x, old_x - q * x
        old_y, y = y, old_y - q * y
    return old_r, old_x, old_y


def mod_inverse(a: int, m: int) -> int:
    """Modular inverse using extended Euclid. Raises ValueError if none exists."""
    if m <= 1:
        raise ValueError("modulus must be > 1")
    g, x, _ = extended_gcd(a % m, m)
    if g != 1:
        raise ValueError(f"{a} is not invertible modulo {m}")
    return x % m


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    """Left-to-right square-and-multiply."""
    if modulus <= 0:
        raise ValueError("modulus must be positive")
    if exponent < 0:
        raise ValueError("exponent must be non-negative")
    if modulus == 1:
        return 0
    base %= modulus
    result = 1
    for bit in bin(exponent)[2:]:
        result = (result * result) % modulus
        if bit == "1":
            result = (result * base) % modulus
    return result


def is_probable_prime(n: int, rounds: int = 16) -> bool:
    """Trial division by small primes, then Miller-Rabin."""
    if n < 2:
        return False
    for p in _SMALL_PRIMES:
        if n == p:
            return True
        if n % p == 0:
            return False
    # write n-1 as 2^s * d
    d = n - 1
    s = 0
    while d % 2 == 0:
        d //= 2
        s += 1

    def check(a: int) -> bool:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            return True
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                return True
        return False

    bases = list(_MR_BASES)
    while len(bases) < rounds:
        bases.append(secrets.randbelow(n - 3) + 2)
    return all(check(a % n) for a in bases if a % n > 1)


def _parse(**named) -> Result:
    values = {}
    for name, raw in named.items():
        try:
            values[name] = parse_decimal(raw)
        except ValueError as e:
            return Result.fail(ErrorKind.INVALID_PARAMETERS, f"cannot parse {name}: {e}")
    return Result.success(values)


def derive_ed_from_pq(p, q) -> Result:
    """
    Choose e and compute d = e^-1 mod phi for the primes p, q.

    e is 65537 when it is coprime to phi and smaller than it, otherwise the
    first odd integer from 3 upward that is. Returns Result[(e, d)].
    """
    parsed = _parse(p=p, q=q)
    if not parsed.ok:
        return parsed
    p, q = parsed.value["p"], parsed.value["q"]
    if p < 2 or q < 2:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "p and q must be >= 2")

    phi = (p - 1) * (q - 1)
    e = DEFAULT_E
    if e >= phi or gcd(e, phi) != 1:
        e = 3
        while gcd(e, phi) != 1:
            e += 2
            if e >= phi:
                break
        if e >= phi:
            return Result.fail(
                ErrorKind.INVALID_PARAMETERS,
                "no valid e below phi(n); try larger p and q",
            )
    return Result.success((e, mod_inverse(e, phi)))


def validate_quintuple(p, q, e, d) -> Result:
    """
    Check p, q >= 2, gcd(e, phi) == 1 and e*d == 1 (mod phi).

    Returns Result[KeyParameters] naming the first invariant that fails.
    """
    parsed = _parse(p=p, q=q, e=e, d=d)
    if not parsed.ok:
        return parsed
    v = parsed.value
    if v["p"] < 2 or v["q"] < 2:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "p and q must be >= 2")
    phi = (v["p"] - 1) * (v["q"] - 1)
    if gcd(v["e"], phi) != 1:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "e and phi(n) are not coprime")
    if (v["e"] * v["d"]) % phi != 1:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "e and d are not inverses modulo phi(n)")
    return Result.success(
        KeyParameters(e=v["e"], d=v["d"], n=v["p"] * v["q"], p=v["p"], q=v["q"])
    )


def validate_by_trial_round_trip(n, e, d) -> Result:
    """
    Encrypt and decrypt a sentinel with (e, n) and (d, n).

    Only a necessary condition: it rejects grossly wrong triples but some
    invalid (n, e, d) still pass, since one value cannot witness the whole
    group. Use validate_quintuple when p and q are known.
    """
    parsed = _parse(n=n, e=e, d=d)
    if not parsed.ok:
        return parsed
    v = parsed.value
    if v["n"] <= TRIAL_SENTINEL:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "n is too small for the trial check")
    encrypted = mod_pow(TRIAL_SENTINEL, v["e"], v["n"])
    if mod_pow(encrypted, v["d"], v["n"]) != TRIAL_SENTINEL:
        return Result.fail(
            ErrorKind.INVALID_PARAMETERS,
            "trial round trip failed: e and d are not inverses modulo phi(n)",
        )
    return Result.success()


def validate_or_build_key(p=None, q=None, e=None, d=None, n=None) -> Result:
    """
    Build KeyParameters from (p, q, e, d[, n]) or (n, e, d).

    Both forms share the numeric floor on n, e and d. With primes:
    primality, p*q == n when n is given, then the quintuple invariants.
    Without primes: the trial round trip.
    """
    if e in (None, "") or d in (None, ""):
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "e and d are required")
    exponents = _parse(e=e, d=d)
    if not exponents.ok:
        return exponents
    if min(exponents.value.values()) < MIN_COMPONENT:
        return Result.fail(ErrorKind.INVALID_KEY, "n, e and d must be >= 3")

    has_p = p not in (None, "")
    has_q = q not in (None, "")
    if has_p != has_q:
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "p and q must be given together")

    if has_p:
        parsed = _parse(p=p, q=q)
        if not parsed.ok:
            return parsed
        pi, qi = parsed.value["p"], parsed.value["q"]
        if pi < 2 or qi < 2:
            return Result.fail(ErrorKind.INVALID_PARAMETERS, "p and q must be >= 2")
        if not is_probable_prime(pi) or not is_probable_prime(qi):
            return Result.fail(ErrorKind.INVALID_PARAMETERS, "p and q must be prime")
        if n not in (None, ""):
            parsed_n = _parse(n=n)
            if not parsed_n.ok:
                return parsed_n
            if pi * qi != parsed_n.value["n"]:
                return Result.fail(ErrorKind.INVALID_PARAMETERS, "p * q does not equal n")
        return validate_quintuple(pi, qi, e, d)

    if n in (None, ""):
        return Result.fail(ErrorKind.INVALID_PARAMETERS, "either (p, q) or n is required")
    parsed = _parse(n=n, e=e, d=d)
    if not parsed.ok:
        return parsed
    v = parsed.value
    if min(v["n"], v["e"], v["d"]) < MIN_COMPONENT:
        return Result.fail(ErrorKind.INVALID_KEY, "n, e and d must be >= 3")
    trial = validate_by_trial_round_trip(v["n"], v["e"], v["d"])
    if not trial.ok:
        return trial
    return Result.success(KeyParameters(e=v["e"], d=v["d"], n=v["n"]))


def generate_params(key_size: int = 2048) -> Result:
    """Standard RSA key generation; returns Result[KeyParameters] with primes."""
    if key_size < config.MIN_KEY_SIZE:
        return Result.fail(
            ErrorKind.INVALID_PARAMETERS,
            f"key size must be at least {config.MIN_KEY_SIZE} bits",
        )
    private_key = rsa.generate_private_key(public_exponent=DEFAULT_E, key_size=key_size)
    numbers = private_key.private_numbers()
    return Result.success(
        KeyParameters(
            e=numbers.public_numbers.e,
            d=numbers.d,
            n=numbers.public_numbers.n,
            p=numbers.p,
            q=numbers.q,
        )
    )
