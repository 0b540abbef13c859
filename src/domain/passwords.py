"""
Password hashing - bcrypt helpers shared by registration and profile updates.
"""

import bcrypt

from .exceptions import InvalidPassword

DEFAULT_ROUNDS = 10

# bcrypt only consumes the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def check_password_length(password: str) -> None:
    """
    Raises:
        InvalidPassword: If the UTF-8 encoding is longer than bcrypt accepts
    """
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise InvalidPassword(f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes")


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """
    Hash password using bcrypt with the given cost factor.

    The salt is generated per call, so two hashes of the same
    password never compare equal as strings. Over-long passwords are
    rejected instead of being truncated.

    Raises:
        InvalidPassword: If the password is longer than 72 bytes
    """
    check_password_length(password)
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()
