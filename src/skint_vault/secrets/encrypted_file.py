"""AES-GCM encrypted file backend for secret storage.

Used when the OS keyring is not reachable. All secrets live in a single
blob, ``secrets.enc``, encrypted with a key derived from the machine (see
:mod:`skint_vault.secrets.cipher`). Every mutation decrypts the whole set,
changes it, and atomically replaces the file while holding an advisory
lock on ``secrets.enc.lock``.
"""

from __future__ import annotations

import contextlib
import errno
import logging
import os
import pathlib
import stat
import tempfile
from collections.abc import Iterator

from skint_vault.secrets import codec
from skint_vault.secrets.cipher import SecretCipher
from skint_vault.secrets.errors import (
    MalformedBlobError,
    SecretNotFoundError,
    SymlinkRejectedError,
    for_secret,
)
from skint_vault.secrets.store import SecretStore

# Platform-specific imports
try:
    import fcntl
except ImportError:
    fcntl = None  # type: ignore[assignment]

try:
    import msvcrt
except ImportError:
    msvcrt = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

BLOB_FILENAME = "secrets.enc"
LOCK_FILENAME = "secrets.enc.lock"
# Older releases kept a derived key here; keys are no longer persisted.
LEGACY_KEY_FILENAME = ".key"

_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)
_O_BINARY = getattr(os, "O_BINARY", 0)


class EncryptedFileStore(SecretStore):
    """Stores secrets as one AES-GCM encrypted blob on disk.

    Parameters
    ----------
    data_dir:
        Directory holding the blob and its lock file. Created with mode
        ``0700`` if missing.
    cipher:
        Cipher to use. Defaults to :meth:`SecretCipher.for_machine`, which
        runs the key derivation once for this instance.
    """

    backend = "file"

    def __init__(self, data_dir: pathlib.Path, cipher: SecretCipher | None = None) -> None:
        self._dir = pathlib.Path(data_dir)
        self._dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._path = self._dir / BLOB_FILENAME
        self._lock_path = self._dir / LOCK_FILENAME
        self._cipher = cipher if cipher is not None else SecretCipher.for_machine()
        self._remove_legacy_key_file()

    @property
    def path(self) -> pathlib.Path:
        """Location of the encrypted blob."""
        return self._path

    def _remove_legacy_key_file(self) -> None:
        legacy = self._dir / LEGACY_KEY_FILENAME
        try:
            legacy.unlink()
        except FileNotFoundError:
            return
        logger.info("Removed legacy key file %s", legacy)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _locked(self, exclusive: bool) -> Iterator[None]:
        """Hold an advisory lock on the sibling lock file."""
        fd = os.open(
            self._lock_path,
            os.O_RDWR | os.O_CREAT | _O_NOFOLLOW | _O_BINARY,
            0o600,
        )
        try:
            if fcntl is not None:
                fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            elif msvcrt is not None:
                # msvcrt has no shared mode; every lock is exclusive
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
            try:
                yield
            finally:
                if fcntl is not None:
                    fcntl.flock(fd, fcntl.LOCK_UN)
                elif msvcrt is not None:
                    os.lseek(fd, 0, os.SEEK_SET)
                    msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
        finally:
            os.close(fd)

    # ------------------------------------------------------------------
    # Blob I/O
    # ------------------------------------------------------------------

    def _read_blob(self) -> bytes | None:
        """Return the raw blob, or ``None`` when it does not exist yet."""
        try:
            info = os.lstat(self._path)
        except FileNotFoundError:
            return None
        if stat.S_ISLNK(info.st_mode):
            raise SymlinkRejectedError("Secrets file is a symlink; refusing to read it")
        if info.st_mode & (stat.S_IRWXG | stat.S_IRWXO):
            logger.warning(
                "%s is accessible by other users (mode %o)",
                self._path,
                stat.S_IMODE(info.st_mode),
            )

        try:
            fd = os.open(self._path, os.O_RDONLY | _O_NOFOLLOW | _O_BINARY)
        except OSError as exc:
            if exc.errno == errno.ELOOP:
                raise SymlinkRejectedError(
                    "Secrets file is a symlink; refusing to read it"
                ) from None
            raise
        with os.fdopen(fd, "rb") as fh:
            return fh.read()

    def _write_blob(self, blob: bytes) -> None:
        """Atomically replace the blob: temp file, fsync, rename."""
        fd, tmp_name = tempfile.mkstemp(
            dir=self._dir, prefix=f".{BLOB_FILENAME}.", suffix=".tmp"
        )
        tmp_path = pathlib.Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        self._sync_dir()

    def _sync_dir(self) -> None:
        if os.name != "posix":
            return
        dir_fd = os.open(self._dir, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)

    def _load_all(self) -> dict[str, str]:
        """Read and decrypt the blob. Returns an empty dict if missing."""
        blob = self._read_blob()
        if blob is None:
            logger.debug("No secrets file at %s yet", self._path)
            return {}
        plaintext = self._cipher.decrypt(blob)
        try:
            return codec.parse(plaintext)
        except UnicodeDecodeError as exc:
            raise MalformedBlobError("Decrypted secrets are not valid UTF-8") from exc

    def _save_all(self, secrets: dict[str, str]) -> None:
        """Serialize, encrypt and write the secret set."""
        self._write_blob(self._cipher.encrypt(codec.serialize(secrets)))
        logger.debug("Wrote %d secrets to %s", len(secrets), self._path)

    # ------------------------------------------------------------------
    # SecretStore
    # ------------------------------------------------------------------

    def store(self, name: str, secret: str) -> None:
        with for_secret(name), self._locked(exclusive=True):
            secrets = self._load_all()
            secrets[name] = secret
            self._save_all(secrets)

    def retrieve(self, name: str) -> str:
        with for_secret(name):
            with self._locked(exclusive=False):
                secrets = self._load_all()
            if name not in secrets:
                raise SecretNotFoundError("No secret stored in the secrets file")
            return secrets[name]

    def delete(self, name: str) -> None:
        with for_secret(name), self._locked(exclusive=True):
            secrets = self._load_all()
            if secrets.pop(name, None) is None:
                return
            self._save_all(secrets)

    def list_names(self) -> list[str]:
        with self._locked(exclusive=False):
            return sorted(self._load_all())
