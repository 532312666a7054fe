#!/usr/bin/env python
"""Encrypt email/password the way the frontend does, for manual login tests.

Usage:
    python scripts/encrypt_credentials.py user@example.com 'password'

Prints a JSON body ready to POST to /api/locket/login.
"""

from __future__ import annotations

import base64
import json
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from relay.core.config import settings
from relay.core.security import SALT_HEADER, evp_bytes_to_key


def encrypt(text: str, passphrase: str) -> str:
    salt = os.urandom(8)
    key, iv = evp_bytes_to_key(passphrase.encode("utf-8"), salt)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(text.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    body = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(SALT_HEADER + salt + body).decode("ascii")


def main() -> None:
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)

    passphrase = settings.login_secret_key
    if not passphrase:
        print("Error: LOGIN_SECRET_KEY not set in .env (credentials are accepted in plaintext)")
        sys.exit(1)

    email, password = sys.argv[1], sys.argv[2]
    print(json.dumps({"email": encrypt(email, passphrase), "password": encrypt(password, passphrase)}, indent=2))


if __name__ == "__main__":
    main()
