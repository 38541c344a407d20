from pwdlib import PasswordHash


password_hash = PasswordHash.recommended()


def hash_password(raw_password: str) -> str:
    return password_hash.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> tuple[bool, str | None]:
    """Return (valid, updated_hash); updated_hash is set when the stored hash should be upgraded."""
    return password_hash.verify_and_update(raw_password, hashed_password)
