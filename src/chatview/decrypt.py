"""Decrypt a vendor chat archive into a plaintext SQLite database."""

from __future__ import annotations

import logging
import os

from .constants import INSTALL_MARKER, SECRET_FILENAME
from .crypto import decrypt_archive, derive_key
from .errors import (
    ArchiveEmpty,
    ArchiveNotFound,
    ChatViewError,
    InstallPathNotFound,
    SecretEmpty,
    SecretNotFound,
    WriteFailed,
    wrap_error,
)
from .files import write_atomic

_logger = logging.getLogger(__name__)


class Decryptor:
    """Turn an encrypted archive into the plaintext database at *output_path*.

    The output path is fixed per installation of this tool; every successful
    :meth:`decrypt` overwrites it. Nothing is written unless every earlier
    step succeeded.
    """

    def __init__(self, output_path: str, logger: logging.Logger | None = None):
        self.output_path = output_path
        self.logger = logger or _logger

    def decrypt(self, archive_path: str, install_path: str) -> str:
        """Decrypt *archive_path* using the secret found under *install_path*.

        Returns the plaintext database path.
        """
        self.logger.info("Decrypting archive %s", archive_path)
        try:
            self._check_install_path(install_path)
            key = derive_key(self._read_secret(install_path))
            self.logger.debug("Derived %d-byte key", len(key))

            data = self._read_archive(archive_path)
            self.logger.debug("Read %d encrypted bytes", len(data))

            plaintext = decrypt_archive(data, key)
            self.logger.info("Decrypted %d bytes", len(plaintext))

            self._write(plaintext)
        except ChatViewError as e:
            e.details.setdefault("archive_path", archive_path)
            self.logger.error("Decryption of %s failed: %s", archive_path, e)
            raise
        except Exception as e:
            self.logger.error("Decryption of %s failed: %s", archive_path, e)
            raise wrap_error(e) from e

        self.logger.info("Plaintext database written to %s", self.output_path)
        return self.output_path

    def _check_install_path(self, install_path: str) -> None:
        if not os.path.isdir(install_path):
            raise InstallPathNotFound(
                f"Installation directory not found: {install_path}",
                {"install_path": install_path},
            )
        marker = os.path.join(install_path, INSTALL_MARKER)
        if not os.path.isfile(marker):
            raise InstallPathNotFound(
                f"Not a valid installation directory ({INSTALL_MARKER} missing): {install_path}",
                {"install_path": install_path},
            )

    def _read_secret(self, install_path: str) -> bytes:
        secret_path = os.path.join(install_path, SECRET_FILENAME)
        if not os.path.isfile(secret_path):
            raise SecretNotFound(
                f"{SECRET_FILENAME} not found in {install_path}",
                {"install_path": install_path},
            )
        with open(secret_path, "rb") as f:
            secret = f.read()
        if not secret:
            raise SecretEmpty(
                f"{SECRET_FILENAME} is empty", {"install_path": install_path}
            )
        self.logger.debug("Read %s (%d bytes)", SECRET_FILENAME, len(secret))
        return secret

    def _read_archive(self, archive_path: str) -> bytes:
        if not os.path.isfile(archive_path):
            raise ArchiveNotFound(
                f"Archive not found: {archive_path}", {"archive_path": archive_path}
            )
        with open(archive_path, "rb") as f:
            data = f.read()
        if not data:
            raise ArchiveEmpty(
                f"Archive is empty: {archive_path}", {"archive_path": archive_path}
            )
        return data

    def _write(self, plaintext: bytes) -> None:
        try:
            parent = os.path.dirname(self.output_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            write_atomic(self.output_path, plaintext)
        except OSError as e:
            raise WriteFailed(
                f"Could not write plaintext database to {self.output_path}: {e}",
                {"output_path": self.output_path},
            ) from e
