"""Tests for chatview.decrypt — the Decryptor pipeline."""

import os

import pytest

from conftest import SECRET
from chatview.crypto import derive_key, encrypt_archive
from chatview.decrypt import Decryptor
from chatview.errors import (
    ArchiveEmpty,
    ArchiveNotFound,
    ArchiveTooShort,
    DecryptionFailed,
    EmptyOrTooShort,
    InstallPathNotFound,
    PathNotFound,
    SecretEmpty,
    SecretNotFound,
    WriteFailed,
)


@pytest.fixture
def output_path(tmp_path):
    return str(tmp_path / "data" / "decrypted.db")


@pytest.fixture
def decryptor(output_path):
    return Decryptor(output_path)


class TestDecryptSuccess:
    def test_round_trip(self, decryptor, encrypted_archive, install_dir, chat_db, output_path):
        result = decryptor.decrypt(encrypted_archive, install_dir)
        assert result == output_path
        with open(output_path, "rb") as f, open(chat_db, "rb") as g:
            assert f.read() == g.read()

    def test_overwrites_previous_output(self, decryptor, tmp_path, install_dir, output_path):
        os.makedirs(os.path.dirname(output_path))
        with open(output_path, "wb") as f:
            f.write(b"stale content that is longer than the new one")

        archive = tmp_path / "small.db"
        archive.write_bytes(encrypt_archive(b"fresh", derive_key(SECRET)))
        decryptor.decrypt(str(archive), install_dir)

        with open(output_path, "rb") as f:
            assert f.read() == b"fresh"


class TestDecryptFailures:
    def test_install_dir_missing(self, decryptor, encrypted_archive, tmp_path, output_path):
        with pytest.raises(InstallPathNotFound) as excinfo:
            decryptor.decrypt(encrypted_archive, str(tmp_path / "nope"))
        assert isinstance(excinfo.value, PathNotFound)
        assert isinstance(excinfo.value, FileNotFoundError)
        assert not os.path.exists(output_path)

    def test_marker_missing(self, decryptor, encrypted_archive, install_dir, output_path):
        os.remove(os.path.join(install_dir, "WeChat.exe"))
        with pytest.raises(InstallPathNotFound, match="WeChat.exe"):
            decryptor.decrypt(encrypted_archive, install_dir)
        assert not os.path.exists(output_path)

    def test_secret_missing(self, decryptor, encrypted_archive, install_dir, output_path):
        os.remove(os.path.join(install_dir, "DBPass.Bin"))
        with pytest.raises(SecretNotFound):
            decryptor.decrypt(encrypted_archive, install_dir)
        assert not os.path.exists(output_path)

    def test_secret_empty(self, decryptor, encrypted_archive, install_dir, output_path):
        with open(os.path.join(install_dir, "DBPass.Bin"), "wb"):
            pass
        with pytest.raises(SecretEmpty) as excinfo:
            decryptor.decrypt(encrypted_archive, install_dir)
        assert isinstance(excinfo.value, SecretNotFound)
        assert isinstance(excinfo.value, EmptyOrTooShort)
        assert not os.path.exists(output_path)

    def test_archive_missing(self, decryptor, install_dir, tmp_path, output_path):
        with pytest.raises(ArchiveNotFound) as excinfo:
            decryptor.decrypt(str(tmp_path / "missing.db"), install_dir)
        assert excinfo.value.details["archive_path"] == str(tmp_path / "missing.db")
        assert not os.path.exists(output_path)

    def test_archive_empty(self, decryptor, install_dir, tmp_path, output_path):
        archive = tmp_path / "empty.db"
        archive.write_bytes(b"")
        with pytest.raises(ArchiveEmpty):
            decryptor.decrypt(str(archive), install_dir)
        assert not os.path.exists(output_path)

    def test_archive_too_short(self, decryptor, install_dir, tmp_path, output_path):
        archive = tmp_path / "short.db"
        archive.write_bytes(b"\x01" * 15)
        with pytest.raises(ArchiveTooShort) as excinfo:
            decryptor.decrypt(str(archive), install_dir)
        assert excinfo.value.details["archive_path"] == str(archive)
        assert not os.path.exists(output_path)

    def test_corrupt_ciphertext(self, decryptor, install_dir, tmp_path, output_path):
        archive = tmp_path / "corrupt.db"
        archive.write_bytes(b"\x02" * 16 + b"\x03" * 21)
        with pytest.raises(DecryptionFailed):
            decryptor.decrypt(str(archive), install_dir)
        assert not os.path.exists(output_path)

    def test_failure_keeps_previous_output(self, decryptor, install_dir, tmp_path, output_path):
        os.makedirs(os.path.dirname(output_path))
        with open(output_path, "wb") as f:
            f.write(b"previous")
        archive = tmp_path / "short.db"
        archive.write_bytes(b"\x01" * 4)
        with pytest.raises(ArchiveTooShort):
            decryptor.decrypt(str(archive), install_dir)
        with open(output_path, "rb") as f:
            assert f.read() == b"previous"

    def test_failed_write_keeps_previous_database(
        self, decryptor, encrypted_archive, install_dir, output_path, disk_full
    ):
        os.makedirs(os.path.dirname(output_path))
        with open(output_path, "wb") as f:
            f.write(b"previous good database")

        with pytest.raises(WriteFailed):
            decryptor.decrypt(encrypted_archive, install_dir)

        with open(output_path, "rb") as f:
            assert f.read() == b"previous good database"
        assert os.listdir(os.path.dirname(output_path)) == ["decrypted.db"]

    def test_failed_first_write_leaves_no_file(
        self, decryptor, encrypted_archive, install_dir, output_path, disk_full
    ):
        with pytest.raises(WriteFailed):
            decryptor.decrypt(encrypted_archive, install_dir)
        assert os.listdir(os.path.dirname(output_path)) == []

    def test_unwritable_output(self, encrypted_archive, install_dir, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        decryptor = Decryptor(str(blocker / "decrypted.db"))
        with pytest.raises(WriteFailed):
            decryptor.decrypt(encrypted_archive, install_dir)
