"""
AES-256-GCM sealing of resource content and SHA-256 integrity hashing.
Key is read from settings once per call; nothing is cached in module state.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lockpost.core.config import settings
from lockpost.errors import ContentCorrupted, EncryptionKeyError

NONCE_BYTES = 12
TAG_BYTES = 16


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: str  # base64
    iv: str          # hex
    auth_tag: str    # hex


def _cipher(key: bytes | None = None) -> AESGCM:
    raw = key if key is not None else settings.encryption_key_bytes
    if len(raw) != 32:
        raise EncryptionKeyError("encryption key must be 32 bytes")
    return AESGCM(raw)


def encrypt_content(plaintext: bytes, key: bytes | None = None) -> EncryptedPayload:
    """Encrypt with a fresh random nonce. Tag is stored separately from the ciphertext."""
    iv = os.urandom(NONCE_BYTES)
    sealed = _cipher(key).encrypt(iv, plaintext, None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return EncryptedPayload(
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
        iv=iv.hex(),
        auth_tag=tag.hex(),
    )


def decrypt_content(payload: EncryptedPayload, key: bytes | None = None) -> bytes:
    """Raises ContentCorrupted if the payload was tampered with or is unreadable."""
    try:
        ciphertext = base64.b64decode(payload.ciphertext)
        iv = bytes.fromhex(payload.iv)
        tag = bytes.fromhex(payload.auth_tag)
        return _cipher(key).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError) as e:
        raise ContentCorrupted("unable to decrypt content") from e


def hash_content(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def verify_content_hash(content: bytes, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_content(content), expected_hash)


def seal_token(token: str, key: bytes | None = None) -> str:
    """Seal a short secret as 'iv:ciphertext' (hex). Used for proof token replays."""
    iv = os.urandom(NONCE_BYTES)
    sealed = _cipher(key).encrypt(iv, token.encode("utf-8"), b"proof-token")
    return f"{iv.hex()}:{sealed.hex()}"


def unseal_token(sealed: str, key: bytes | None = None) -> str:
    try:
        iv_hex, data_hex = sealed.split(":", 1)
        raw = _cipher(key).decrypt(bytes.fromhex(iv_hex), bytes.fromhex(data_hex), b"proof-token")
    except (InvalidTag, ValueError) as e:
        raise ContentCorrupted("unable to unseal proof token") from e
    return raw.decode("utf-8")
