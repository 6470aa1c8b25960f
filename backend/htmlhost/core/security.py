import hashlib
import hmac

import bcrypt

from htmlhost.core.config import settings


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def is_valid_api_key(api_key: str) -> bool:
    return any(
        hmac.compare_digest(api_key.encode("utf-8"), valid.encode("utf-8"))
        for valid in settings.API_KEYS
    )


def _to_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes and newer releases refuse more
    return password.encode("utf-8")[:72]


def get_password_hash(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_to_bytes(password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_to_bytes(plain_password), hashed_password.encode("utf-8"))
