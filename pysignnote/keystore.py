# keystore.py
import base64
import binascii
import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import IdentityError, StorageError

logger = logging.getLogger(__name__)

PUBLIC_KEY_NAME = "publicKey"
PRIVATE_KEY_NAME = "privateKey"
CREATED_AT_NAME = "createdAt"


class SecretStore:
    """Encrypted-at-rest key/value namespace backed by a JSON file.

    Every value is stored as a Fernet token. The Fernet key is kept in a
    separate file which is created on first use.
    """

    def __init__(self, path: Path, key_path: Path):
        self.path = Path(path)
        self.key_path = Path(key_path)
        self._fernet: Optional[Fernet] = None

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            if self.key_path.exists():
                try:
                    self._fernet = Fernet(self.key_path.read_bytes().strip())
                except (OSError, ValueError) as e:
                    raise StorageError(f"Unreadable master key {self.key_path}: {e}") from e
            elif self.path.exists():
                # A new key could never decrypt what is already stored
                raise StorageError(f"Master key {self.key_path} is missing for {self.path}")
            else:
                logger.info("Creating new master key at %s", self.key_path)
                key = Fernet.generate_key()
                _atomic_write(self.key_path, key)
                self._fernet = Fernet(key)
        return self._fernet

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Unreadable secret store {self.path}: {e}") from e
        if not isinstance(doc, dict):
            raise StorageError(f"Secret store {self.path} is not a JSON object")
        return doc

    def get(self, name: str) -> Optional[str]:
        token = self._read_all().get(name)
        if token is None:
            return None
        try:
            return self._get_fernet().decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, AttributeError, UnicodeError) as e:
            raise StorageError(f"Secret '{name}' cannot be decrypted") from e

    def put(self, name: str, value: str) -> None:
        doc = self._read_all()
        doc[name] = self._get_fernet().encrypt(value.encode("utf-8")).decode("ascii")
        _atomic_write(self.path, json.dumps(doc, indent=2).encode("utf-8"))


def _atomic_write(path: Path, data: bytes, mode: int = 0o600) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".tmp.", dir=path.parent)
    except OSError as e:
        raise StorageError(f"Cannot write {path}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError as e:
        raise StorageError(f"Cannot write {path}: {e}") from e
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


@dataclass(frozen=True)
class Identity:
    """The local signing keypair."""
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    created_at: str

    @property
    def public_key_der(self) -> bytes:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @property
    def fingerprint(self) -> str:
        return hashlib.sha256(self.public_key_der).hexdigest()

    def export_public_key(self) -> str:
        """Base64 of the X.509 SubjectPublicKeyInfo encoding, no delimiters."""
        return base64.b64encode(self.public_key_der).decode("ascii")


class KeyStore:
    """Owns the identity keypair: loads it from the secret store or creates it."""

    def __init__(self, secrets: SecretStore, key_size: int = 2048):
        self.secrets = secrets
        self.key_size = key_size
        self._identity: Optional[Identity] = None
        self._error: Optional[IdentityError] = None

    def get_or_create_identity(self) -> Identity:
        if self._identity is not None:
            return self._identity
        # A broken identity stays broken for the life of the process
        if self._error is not None:
            raise self._error

        try:
            public_b64 = self.secrets.get(PUBLIC_KEY_NAME)
            private_b64 = self.secrets.get(PRIVATE_KEY_NAME)
            created_at = self.secrets.get(CREATED_AT_NAME)
        except StorageError as e:
            self._error = IdentityError(f"Identity store unreadable: {e}")
            raise self._error from e

        if public_b64 is None and private_b64 is None:
            try:
                self._identity = self._generate()
            except StorageError as e:
                logger.error("Could not store new identity: %s", e)
                self._error = IdentityError(f"Identity could not be saved: {e}")
                raise self._error from e
        else:
            try:
                self._identity = _load_identity(public_b64, private_b64, created_at)
            except IdentityError as e:
                logger.error("Stored identity is unusable: %s", e)
                self._error = e
                raise
            logger.info("Loaded identity %s", self._identity.fingerprint)
        return self._identity

    def _generate(self) -> Identity:
        logger.info("Generating new %d-bit RSA identity...", self.key_size)
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)
        identity = Identity(
            private_key=private_key,
            public_key=private_key.public_key(),
            created_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        private_der = private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        # Private half first: a crash in between leaves a detectable half-identity
        self.secrets.put(PRIVATE_KEY_NAME, base64.b64encode(private_der).decode("ascii"))
        self.secrets.put(PUBLIC_KEY_NAME, identity.export_public_key())
        self.secrets.put(CREATED_AT_NAME, identity.created_at)
        logger.info("Created identity %s", identity.fingerprint)
        return identity


def _load_identity(public_b64: Optional[str], private_b64: Optional[str],
                   created_at: Optional[str]) -> Identity:
    if public_b64 is None or private_b64 is None:
        raise IdentityError("Only one half of the identity keypair is stored")
    try:
        public_der = base64.b64decode(public_b64, validate=True)
        private_der = base64.b64decode(private_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise IdentityError(f"Stored key material is not valid base64: {e}") from e

    try:
        public_key = serialization.load_der_public_key(public_der)
        private_key = serialization.load_der_private_key(private_der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise IdentityError(f"Stored key material cannot be decoded: {e}") from e

    if not isinstance(private_key, rsa.RSAPrivateKey) or not isinstance(public_key, rsa.RSAPublicKey):
        raise IdentityError("Stored identity is not an RSA keypair")
    if private_key.public_key().public_numbers() != public_key.public_numbers():
        raise IdentityError("Stored public key does not match the private key")

    return Identity(private_key=private_key, public_key=public_key, created_at=created_at or "")
