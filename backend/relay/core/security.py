"""Decryption of login credentials sent by the web frontend.

The frontend encrypts email and password with a shared passphrase using the
OpenSSL passphrase format that CryptoJS ``AES.encrypt(text, passphrase)``
emits:

    base64( b"Salted__" + salt[8] + AES-256-CBC(PKCS#7(plaintext)) )

with key and IV derived from passphrase + salt by EVP_BytesToKey (MD5, one
iteration). When no passphrase is configured the values are taken as-is.
"""

from __future__ import annotations

import base64
import binascii
import hashlib

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from relay.core.config import settings
from relay.core.errors import CredentialDecryptError

SALT_HEADER = b"Salted__"
KEY_LEN = 32
IV_LEN = 16


def evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = KEY_LEN, iv_len: int = IV_LEN) -> tuple[bytes, bytes]:
    """Derive (key, iv) the way OpenSSL's EVP_BytesToKey does with MD5."""
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def decrypt_value(ciphertext_b64: str, passphrase: str) -> str:
    """Decrypt a single OpenSSL-format, base64 encoded value.

    Args:
        ciphertext_b64: Base64 text starting (once decoded) with ``Salted__``
        passphrase: Shared secret

    Returns:
        The UTF-8 plaintext

    Raises:
        CredentialDecryptError: If the value is malformed or the passphrase is wrong
    """
    try:
        raw = base64.b64decode(ciphertext_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialDecryptError("Invalid encrypted credentials") from e

    if len(raw) < 16 + IV_LEN or not raw.startswith(SALT_HEADER):
        raise CredentialDecryptError("Invalid encrypted credentials")

    salt = raw[8:16]
    body = raw[16:]
    if len(body) % IV_LEN:
        raise CredentialDecryptError("Invalid encrypted credentials")

    key, iv = evp_bytes_to_key(passphrase.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()

    try:
        padded = decryptor.update(body) + decryptor.finalize()
        plain = unpadder.update(padded) + unpadder.finalize()
        text = plain.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise CredentialDecryptError("Invalid encrypted credentials") from e

    if not text:
        raise CredentialDecryptError("Invalid encrypted credentials")
    return text


def decrypt_login_data(email: str, password: str, passphrase: str | None = None) -> tuple[str, str]:
    """Decrypt the email/password pair posted to the login endpoint.

    Args:
        email: Encrypted (or plain, when no passphrase is set) email
        password: Encrypted (or plain) password
        passphrase: Overrides LOGIN_SECRET_KEY

    Returns:
        Tuple of (email, password) in plaintext

    Raises:
        CredentialDecryptError: If either value fails to decrypt
    """
    secret = settings.login_secret_key if passphrase is None else passphrase
    if not secret:
        return email, password
    return decrypt_value(email, secret), decrypt_value(password, secret)
