"""
Encryption at rest for bank account and Aadhaar numbers.

Ciphertexts are stored as a single string, ``<iv hex>:<ciphertext hex>``, using
AES-256-CBC with PKCS7 padding and a fresh 16-byte IV per value. The AES key is
derived from ``ACCOUNT_ENCRYPTION_KEY`` with scrypt so blobs written by the
previous service remain readable.
"""
import hashlib
import hmac
import os
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from django.conf import settings

from saveinvest.errors import DataCorruption

IV_LENGTH = 16
KEY_SALT = b"salt"


@lru_cache(maxsize=4)
def _derive_key(secret: str) -> bytes:
    kdf = Scrypt(salt=KEY_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode())


def _key() -> bytes:
    return _derive_key(settings.ACCOUNT_ENCRYPTION_KEY)


def encrypt_account_number(plain: str) -> str:
    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(plain.encode()) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_key()), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(data) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_account_number(blob: str) -> str:
    """Reverse of encrypt_account_number. Any malformed blob raises DataCorruption."""
    if not blob or ":" not in blob:
        raise DataCorruption("Encrypted value is missing the iv separator")

    iv_hex, _, ct_hex = blob.partition(":")
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ct_hex)
    except ValueError as exc:
        raise DataCorruption("Encrypted value is not valid hex") from exc

    if len(iv) != IV_LENGTH:
        raise DataCorruption(f"Invalid IV length {len(iv)}")
    if not ciphertext or len(ciphertext) % IV_LENGTH:
        raise DataCorruption("Ciphertext is empty or not block aligned")

    decryptor = Cipher(algorithms.AES(_key()), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode()
    except (ValueError, UnicodeDecodeError) as exc:
        # Wrong key or tampered ciphertext
        raise DataCorruption("Encrypted value failed to decrypt") from exc


def fingerprint(value: str) -> str:
    """Keyed hash used for uniqueness lookups without decrypting."""
    return hmac.new(
        settings.DATA_HASH_KEY.encode(), value.encode(), hashlib.sha256
    ).hexdigest()


def mask_account_number(number: str) -> str:
    return f"****{number[-4:]}"


def mask_aadhaar(number: str) -> str:
    return f"XXXX-XXXX-{number[-4:]}"
