"""Input validation for crypto operations."""

from typing import Any

from .errors import CipherionError

MIN_PASSPHRASE_LENGTH = 12


def validate_passphrase(passphrase: str | None) -> None:
    """Require a passphrase of at least MIN_PASSPHRASE_LENGTH characters."""
    if not passphrase or len(passphrase) < MIN_PASSPHRASE_LENGTH:
        raise CipherionError(
            f"Passphrase must be at least {MIN_PASSPHRASE_LENGTH} characters long", 400
        )


def validate_data(data: Any) -> None:
    if data is None:
        raise CipherionError("Data cannot be null or undefined", 400)


def validate_encrypted_data(encrypted: Any) -> None:
    if not encrypted:
        raise CipherionError("Encrypted data is required for decryption", 400)
