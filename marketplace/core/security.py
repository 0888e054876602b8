import bcrypt

from marketplace.core.errors import InvalidArgumentError


def get_password_hash(password: str) -> str:
    """
    Hash a password with bcrypt.
    bcrypt only looks at the first 72 bytes, so longer passwords are refused
    instead of being silently truncated.
    """
    if not password:
        raise InvalidArgumentError("Password is required")

    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > 72:
        raise InvalidArgumentError("Password must be 72 bytes or less")

    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    pw_bytes = plain_password.encode("utf-8")
    if len(pw_bytes) > 72:
        return False
    try:
        return bcrypt.checkpw(pw_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Stored credential is not a bcrypt hash.
        return False
