from pwdlib import PasswordHash


MIN_PASSWORD_LENGTH = 8

password_hasher = PasswordHash.recommended()


def hash_password(raw_password: str) -> str:
    return password_hasher.hash(raw_password)


def check_password(raw_password: str, hashed_password: str | None) -> tuple[bool, str | None]:
    """Verify a password against a stored hash.

    Returns ``(valid, new_hash)``; ``new_hash`` is set when the stored hash was
    produced with outdated parameters and should be replaced. Accounts that
    only sign in through the identity provider have no hash and never match.
    """
    if not hashed_password:
        return False, None
    return password_hasher.verify_and_update(raw_password, hashed_password)
