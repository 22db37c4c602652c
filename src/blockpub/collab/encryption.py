"""Symmetric document encryption with NaCl SecretBox (XSalsa20-Poly1305)"""

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from blockpub.collab.interfaces import EncryptedPayload, EncryptionBackend
from blockpub.core.result import Err, Ok, Result


class SecretBoxEncryption(EncryptionBackend):
    """Encrypts each payload under a fresh random 256-bit key.

    Ciphertext is nonce || box; the nonce is random per call, so encrypting
    the same bytes twice gives different ciphertext and a different key.
    """

    async def encrypt(self, data: bytes) -> Result:
        try:
            key = nacl.utils.random(SecretBox.KEY_SIZE)
            ciphertext = bytes(SecretBox(key).encrypt(data))
        except (CryptoError, TypeError) as e:
            return Err(e)
        return Ok(EncryptedPayload(ciphertext=ciphertext, symmetric_key=key))

    async def decrypt(self, ciphertext: bytes, key: bytes) -> Result:
        try:
            return Ok(SecretBox(key).decrypt(ciphertext))
        except (CryptoError, TypeError, ValueError) as e:
            return Err(e)
