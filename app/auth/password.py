# app/auth/password.py
import secrets
import string

import bcrypt

REGISTRATION_ROUNDS = 10
RESET_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

_SYMBOLS = "!@#$%^&*()-_=+"


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = REGISTRATION_ROUNDS) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(password), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash stored for the user
        return False


def generate_password(length: int = 12) -> str:
    """
    Generate a random password containing at least one lowercase letter,
    one uppercase letter, one digit and one symbol.
    """
    if length < 8 or length > 50:
        raise ValueError("Password length must be between 8 and 50")

    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(_SYMBOLS),
    ]
    alphabet = string.ascii_letters + string.digits + _SYMBOLS
    chars = required + [secrets.choice(alphabet) for _ in range(length - len(required))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
