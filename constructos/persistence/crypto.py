"""
Construct OS Snapshot Encryption

Passphrase-based authenticated encryption for snapshots at rest and in
transit:
- PBKDF2-HMAC-SHA256 key derivation (250,000 iterations)
- AES-256-GCM with a fresh random salt and IV for every encryption
- Text-safe envelope {iv, salt, cipher} with base64 fields
- Executor-backed async wrappers so key derivation never blocks the loop
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import secrets
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from constructos.domain.models import Snapshot
from constructos.persistence.errors import AuthenticationError, MalformedEnvelopeError
from constructos.persistence.serializers import decode_snapshot, encode_snapshot

KDF_ITERATIONS = 250_000
KEY_LENGTH = 32  # AES-256
SALT_LENGTH = 16
IV_LENGTH = 12  # 96-bit GCM nonce
TAG_LENGTH = 16


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Encrypted snapshot container. ``cipher`` carries the GCM tag at its end."""
    iv: bytes
    salt: bytes
    cipher: bytes

    def to_dict(self) -> dict[str, str]:
        return {
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "salt": base64.b64encode(self.salt).decode("ascii"),
            "cipher": base64.b64encode(self.cipher).decode("ascii"),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "EncryptedEnvelope":
        """
        Build an envelope from its decoded JSON form.

        Raises:
            MalformedEnvelopeError: missing fields, bad base64 or bad sizes
        """
        if not isinstance(data, dict):
            raise MalformedEnvelopeError("Envelope must be a JSON object")

        fields = {}
        for name in ("iv", "salt", "cipher"):
            value = data.get(name)
            if not value or not isinstance(value, str):
                raise MalformedEnvelopeError(f"Envelope field '{name}' is missing")
            try:
                fields[name] = base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedEnvelopeError(f"Envelope field '{name}' is not valid base64") from e

        if len(fields["iv"]) != IV_LENGTH:
            raise MalformedEnvelopeError(f"Envelope IV must be {IV_LENGTH} bytes")
        if len(fields["salt"]) != SALT_LENGTH:
            raise MalformedEnvelopeError(f"Envelope salt must be {SALT_LENGTH} bytes")
        if len(fields["cipher"]) < TAG_LENGTH:
            raise MalformedEnvelopeError("Envelope ciphertext is shorter than the authentication tag")

        return cls(**fields)

    @classmethod
    def from_json(cls, text: str | bytes) -> "EncryptedEnvelope":
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEnvelopeError("Envelope is not valid JSON") from e
        return cls.from_dict(data)


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Stretch a passphrase into a 256-bit key. Deterministic for a given salt."""
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"Salt must be {SALT_LENGTH} bytes")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(plaintext: bytes, passphrase: str) -> EncryptedEnvelope:
    """Encrypt with a freshly drawn salt and IV."""
    salt = secrets.token_bytes(SALT_LENGTH)
    iv = secrets.token_bytes(IV_LENGTH)
    key = derive_key(passphrase, salt)
    cipher = AESGCM(key).encrypt(iv, plaintext, None)
    return EncryptedEnvelope(iv=iv, salt=salt, cipher=cipher)


def decrypt(envelope: EncryptedEnvelope, passphrase: str) -> bytes:
    """
    Decrypt and verify an envelope.

    Raises:
        AuthenticationError: wrong passphrase or corrupted ciphertext
    """
    key = derive_key(passphrase, envelope.salt)
    try:
        return AESGCM(key).decrypt(envelope.iv, envelope.cipher, None)
    except InvalidTag as e:
        raise AuthenticationError("Wrong passphrase or corrupted data") from e


async def encrypt_async(plaintext: bytes, passphrase: str) -> EncryptedEnvelope:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, encrypt, plaintext, passphrase)


async def decrypt_async(envelope: EncryptedEnvelope, passphrase: str) -> bytes:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, decrypt, envelope, passphrase)


async def seal_snapshot(snapshot: Snapshot, passphrase: str) -> str:
    """Serialize and encrypt a snapshot into envelope JSON text."""
    envelope = await encrypt_async(encode_snapshot(snapshot), passphrase)
    return envelope.to_json()


async def open_snapshot(text: str | bytes, passphrase: str) -> Snapshot:
    """
    Decrypt envelope JSON text back into a snapshot.

    Raises:
        MalformedEnvelopeError, AuthenticationError, DecodeError
    """
    envelope = EncryptedEnvelope.from_json(text)
    plaintext = await decrypt_async(envelope, passphrase)
    return decode_snapshot(plaintext)
