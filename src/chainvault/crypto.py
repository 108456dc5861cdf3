"""Password-based encryption of private key material.

Secrets are sealed with a key derived from the owner's password:

    PBKDF2-HMAC-SHA256 (fresh 16-byte salt) -> 32-byte AES key + 32-byte MAC key
    AES-256-CBC with PKCS7 padding (fresh 16-byte IV)
    HMAC-SHA256 over version || iv || ciphertext

The version number and iteration count travel with every EncryptedSecret so
records written today stay readable after the parameters change.
"""

import hashlib
import os
from dataclasses import dataclass, field
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chainvault.exceptions import WrongPasswordOrCorruptData

CURRENT_VERSION = 1
MIN_ITERATIONS = 100_000
DEFAULT_ITERATIONS = 100_000
SALT_SIZE = 16
IV_SIZE = 16
KEY_SIZE = 32


@dataclass(frozen=True)
class EncryptedSecret:
    """At-rest form of a private key."""

    ciphertext: bytes = field(repr=False)
    salt: bytes = field(repr=False)
    iv: bytes = field(repr=False)
    mac: bytes = field(repr=False)
    version: int = CURRENT_VERSION
    iterations: int = DEFAULT_ITERATIONS

    def to_dict(self) -> dict:
        """Convert to a hex-encoded dictionary for storage."""
        return {
            "ciphertext": self.ciphertext.hex(),
            "salt": self.salt.hex(),
            "iv": self.iv.hex(),
            "mac": self.mac.hex(),
            "version": self.version,
            "iterations": self.iterations,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedSecret":
        """Rebuild from the dictionary produced by to_dict().

        Raises:
            WrongPasswordOrCorruptData: If fields are missing or not hex
        """
        try:
            return cls(
                ciphertext=bytes.fromhex(data["ciphertext"]),
                salt=bytes.fromhex(data["salt"]),
                iv=bytes.fromhex(data["iv"]),
                mac=bytes.fromhex(data["mac"]),
                version=int(data["version"]),
                iterations=int(data["iterations"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise WrongPasswordOrCorruptData(f"Malformed encrypted secret: {type(e).__name__}") from e


def derive_key_from_password(
    password: str,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
) -> tuple[bytes, bytes]:
    """Derive an encryption key and a MAC key from a password using PBKDF2.

    Args:
        password: User-provided password
        salt: Random salt stored next to the ciphertext
        iterations: PBKDF2 iteration count

    Returns:
        Tuple of (32-byte AES key, 32-byte HMAC key)
    """
    material = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode(),
        salt,
        iterations,
        dklen=KEY_SIZE * 2,
    )
    return material[:KEY_SIZE], material[KEY_SIZE:]


def _mac(mac_key: bytes, version: int, iv: bytes, ciphertext: bytes) -> hmac.HMAC:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(version.to_bytes(2, "big"))
    h.update(iv)
    h.update(ciphertext)
    return h


class SecretCipher:
    """Encrypts and decrypts private keys with a password.

    Usage:
        cipher = SecretCipher()
        sealed = cipher.encrypt(b"0xabc...", "hunter2")
        plain = cipher.decrypt(sealed, "hunter2")
    """

    def __init__(self, iterations: int = DEFAULT_ITERATIONS):
        """Initialize with KDF parameters.

        Args:
            iterations: PBKDF2 iterations used for new encryptions

        Raises:
            ValueError: If iterations is below MIN_ITERATIONS
        """
        if iterations < MIN_ITERATIONS:
            raise ValueError(f"KDF iterations must be at least {MIN_ITERATIONS}, got {iterations}")
        self.iterations = iterations

    def encrypt(self, secret: Union[bytes, str], password: str) -> EncryptedSecret:
        """Encrypt a secret under a password.

        A fresh salt and IV are drawn on every call.
        """
        if isinstance(secret, str):
            secret = secret.encode()

        salt = os.urandom(SALT_SIZE)
        iv = os.urandom(IV_SIZE)
        enc_key, mac_key = derive_key_from_password(password, salt, self.iterations)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(secret) + padder.finalize()

        encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        mac = _mac(mac_key, CURRENT_VERSION, iv, ciphertext).finalize()

        return EncryptedSecret(
            ciphertext=ciphertext,
            salt=salt,
            iv=iv,
            mac=mac,
            version=CURRENT_VERSION,
            iterations=self.iterations,
        )

    def decrypt(self, sealed: EncryptedSecret, password: str) -> bytes:
        """Decrypt a secret.

        Args:
            sealed: Value returned by encrypt()
            password: Password used at encryption time

        Returns:
            The plaintext secret bytes

        Raises:
            WrongPasswordOrCorruptData: Wrong password, tampering, or unknown version
        """
        if sealed.version != CURRENT_VERSION:
            raise WrongPasswordOrCorruptData(f"Unsupported secret version {sealed.version}")
        if len(sealed.salt) != SALT_SIZE or len(sealed.iv) != IV_SIZE:
            raise WrongPasswordOrCorruptData("Malformed encrypted secret")
        if sealed.iterations < MIN_ITERATIONS:
            raise WrongPasswordOrCorruptData("Encrypted secret has an invalid iteration count")

        enc_key, mac_key = derive_key_from_password(password, sealed.salt, sealed.iterations)

        try:
            _mac(mac_key, sealed.version, sealed.iv, sealed.ciphertext).verify(sealed.mac)
        except InvalidSignature:
            raise WrongPasswordOrCorruptData("Wrong password or corrupted data") from None

        try:
            decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(sealed.iv)).decryptor()
            padded = decryptor.update(sealed.ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            # Authenticated but undecryptable: the record itself is damaged
            raise WrongPasswordOrCorruptData("Wrong password or corrupted data") from None

    def rotate_password(self, sealed: EncryptedSecret, old_password: str, new_password: str) -> EncryptedSecret:
        """Re-encrypt a secret under a new password (and current parameters)."""
        plain = self.decrypt(sealed, old_password)
        return self.encrypt(plain, new_password)

