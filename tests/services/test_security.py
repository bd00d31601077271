"""Password hashing tests."""

from sudu.services.security import hash_password, verify_password


def test_hash_is_bcrypt_and_salted():
    first = hash_password("secret123")
    second = hash_password("secret123")

    assert first.startswith("$2")
    assert first != second
    assert verify_password("secret123", first)
    assert verify_password("secret123", second)


def test_wrong_password_rejected():
    assert not verify_password("wrong", hash_password("secret123"))


def test_plaintext_stored_value_rejected():
    """A stored value that is not a bcrypt hash never matches."""
    assert not verify_password("secret123", "secret123")


def test_long_non_ascii_password():
    password = "пароль" * 20  # 240 bytes in UTF-8
    hashed = hash_password(password)
    assert verify_password(password, hashed)
