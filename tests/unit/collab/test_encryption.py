"""Unit tests for collab/encryption.py"""

import asyncio

from blockpub.collab.encryption import SecretBoxEncryption
from blockpub.core.result import Err, Ok


def test_encrypt_then_decrypt_restores_bytes():
    enc = SecretBoxEncryption()
    payload = asyncio.run(enc.encrypt(b'{"id":"root"}')).value
    assert len(payload.symmetric_key) == 32
    assert b"root" not in payload.ciphertext
    assert asyncio.run(enc.decrypt(payload.ciphertext, payload.symmetric_key)) == Ok(b'{"id":"root"}')


def test_each_encryption_uses_a_fresh_key():
    enc = SecretBoxEncryption()
    a = asyncio.run(enc.encrypt(b"same")).value
    b = asyncio.run(enc.encrypt(b"same")).value
    assert a.symmetric_key != b.symmetric_key
    assert a.ciphertext != b.ciphertext


def test_decrypt_with_wrong_key_is_err():
    enc = SecretBoxEncryption()
    payload = asyncio.run(enc.encrypt(b"data")).value
    assert isinstance(asyncio.run(enc.decrypt(payload.ciphertext, b"\x00" * 32)), Err)
    assert isinstance(asyncio.run(enc.decrypt(payload.ciphertext, b"short")), Err)


def test_encrypt_rejects_non_bytes():
    assert isinstance(asyncio.run(SecretBoxEncryption().encrypt("text")), Err)


def test_payload_repr_hides_key():
    payload = asyncio.run(SecretBoxEncryption().encrypt(b"data")).value
    assert "redacted" in repr(payload)
    assert payload.symmetric_key.hex() not in repr(payload)
