"""AES-256-CBC archive decryption with SHA-256 key derivation."""

import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .constants import BLOCK_SIZE_BITS, IV_LENGTH, KEY_LENGTH
from .errors import ArchiveEmpty, ArchiveTooShort, DecryptionFailed, SecretEmpty

# Archive layout:
#  16 bytes  IV
#   N bytes  AES-256-CBC ciphertext, PKCS7 padded
# There is no MAC. A wrong key is only detected if the padding happens to be
# invalid after decryption.


def derive_key(secret: bytes) -> bytes:
    """Reduce the vendor secret blob to a 256-bit key (SHA-256)."""
    if not secret:
        raise SecretEmpty("Secret file is empty")
    key = hashlib.sha256(secret).digest()
    assert len(key) == KEY_LENGTH
    return key


def encrypt_archive(plaintext: bytes, key: bytes, iv: bytes | None = None) -> bytes:
    """Encrypt *plaintext* into the ``IV || ciphertext`` archive layout."""
    if iv is None:
        iv = os.urandom(IV_LENGTH)
    if len(iv) != IV_LENGTH:
        raise ValueError(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")

    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


def decrypt_archive(data: bytes, key: bytes) -> bytes:
    """Decrypt an ``IV || ciphertext`` archive and strip its padding.

    Raises:
        ArchiveEmpty: If *data* is empty.
        ArchiveTooShort: If *data* is shorter than one IV; no cipher call is made.
        DecryptionFailed: If the cipher or the padding check rejects the input.
    """
    if not data:
        raise ArchiveEmpty("Archive is empty", {"size": 0})
    if len(data) < IV_LENGTH:
        raise ArchiveTooShort(
            f"Archive is too short ({len(data)} bytes, need at least {IV_LENGTH})",
            {"size": len(data)},
        )

    iv = data[:IV_LENGTH]
    ciphertext = data[IV_LENGTH:]

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionFailed(
            f"Decryption failed — wrong key or corrupted archive ({e})",
            {"size": len(data)},
        ) from e

    return plaintext
