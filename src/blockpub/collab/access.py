"""Access-policy node: seals symmetric keys under access conditions, releases them to qualifying callers"""

import logging
from pathlib import Path
from typing import Any

import nacl.utils
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_KEYBYTES,
    crypto_aead_xchacha20poly1305_ietf_NPUBBYTES,
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from blockpub.collab.interfaces import USER_ADDRESS, AccessPolicy, Chain, ConditionClause, ReturnValueTest
from blockpub.core.errors import AccessDenied
from blockpub.core.result import Err, Ok, Result, resolve
from blockpub.core.utils.canonical import canonical_json


logger = logging.getLogger(__name__)

KEY_BYTES = crypto_aead_xchacha20poly1305_ietf_KEYBYTES
NONCE_BYTES = crypto_aead_xchacha20poly1305_ietf_NPUBBYTES


def load_or_create_key(path: Path) -> bytes:
    """Read the hex master key at `path`, creating a random one (mode 0600) if missing."""
    path = Path(path)
    if path.exists():
        key = bytes.fromhex(path.read_text().strip())
        if len(key) != KEY_BYTES:
            raise ValueError(f"Policy key in {path} must be {KEY_BYTES} bytes, got {len(key)}")
        return key
    path.parent.mkdir(parents=True, exist_ok=True)
    key = nacl.utils.random(KEY_BYTES)
    path.write_text(key.hex())
    path.chmod(0o600)
    logger.info("Created policy key at %s", path)
    return key


def conditions_aad(conditions: list[ConditionClause]) -> bytes:
    """Associated data binding a sealed key to the exact condition set."""
    return canonical_json([c.model_dump(by_alias=True) for c in conditions])


class LocalAccessPolicy(AccessPolicy):
    """Seals keys with XChaCha20-Poly1305 under a node master key.

    The condition set is bound as associated data, so a sealed key only opens
    with the conditions it was sealed under, and only after every clause
    evaluates true against the chain for the requesting address.
    """

    def __init__(self, chain: Chain, master_key: bytes, chain_name: str = "mumbai"):
        if len(master_key) != KEY_BYTES:
            raise ValueError(f"master_key must be {KEY_BYTES} bytes")
        self.chain = chain
        self.chain_name = chain_name
        self._master_key = master_key
        self._predicates = {"ownerOfBlock": self.chain.owner_of_block}

    def build_condition(self, contract_name: str, predicate: str, args: list[Any]) -> ConditionClause:
        return ConditionClause(
            contract_address=self.chain.contract_address(contract_name),
            function_name=predicate,
            function_params=[str(a) for a in args],
            chain=self.chain_name,
            return_value_test=ReturnValueTest(key="", comparator="=", value="true"),
        )

    async def encrypt_key_under_conditions(self, symmetric_key: bytes, conditions: list[ConditionClause]) -> Result:
        if not conditions:
            return Err(ValueError("At least one access condition is required"))
        nonce = nacl.utils.random(NONCE_BYTES)
        try:
            sealed = crypto_aead_xchacha20poly1305_ietf_encrypt(
                symmetric_key, conditions_aad(conditions), nonce, self._master_key,
            )
        except (CryptoError, TypeError) as e:
            return Err(e)
        return Ok(nonce + sealed)

    async def _holds(self, clause: ConditionClause, user_address: str) -> bool:
        if clause.chain != self.chain_name:
            return False
        predicate = self._predicates.get(clause.function_name)
        if predicate is None:
            logger.warning("Unsupported access predicate '%s'", clause.function_name)
            return False
        params = [user_address if p == USER_ADDRESS else p for p in clause.function_params]
        value = await predicate(*params)
        test = clause.return_value_test
        if test.comparator not in ("=", "=="):
            logger.warning("Unsupported comparator '%s'", test.comparator)
            return False
        return str(value).lower() == test.value.lower()

    async def decrypt_key(self, encrypted_key: bytes, conditions: list[ConditionClause], user_address: str) -> Result:
        if not conditions:
            return Err(AccessDenied("No access conditions supplied"))
        for clause in conditions:
            allowed = await resolve(self._holds(clause, user_address))
            if isinstance(allowed, Err):
                return allowed
            if not allowed.value:
                return Err(AccessDenied(f"{user_address} does not satisfy {clause.function_name} on {clause.contract_address}"))
        nonce, sealed = encrypted_key[:NONCE_BYTES], encrypted_key[NONCE_BYTES:]
        try:
            key = crypto_aead_xchacha20poly1305_ietf_decrypt(sealed, conditions_aad(conditions), nonce, self._master_key)
        except (CryptoError, TypeError, ValueError) as e:
            return Err(e)
        return Ok(key)
