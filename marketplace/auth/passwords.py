import hashlib
import hmac
import secrets

# scrypt cost parameters; stored hashes are "<hex digest>.<hex salt>"
_N = 2 ** 14
_R = 8
_P = 1
_DKLEN = 64


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(password.encode("utf-8"), salt=salt.encode("utf-8"), n=_N, r=_R, p=_P, dklen=_DKLEN)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    return f"{_derive(password, salt).hex()}.{salt}"


def verify_password(supplied: str, stored: str) -> bool:
    try:
        hashed, salt = stored.split(".", 1)
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False
    return hmac.compare_digest(expected, _derive(supplied, salt))


def generate_reset_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"
