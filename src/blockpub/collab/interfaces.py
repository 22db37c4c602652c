"""Collaborator contracts consumed by the publish pipeline, and the values they exchange"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from blockpub.core.result import Result


USER_ADDRESS = ":userAddress"   # placeholder substituted with the caller's address at key release


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: bytes
    symmetric_key: bytes

    def __repr__(self) -> str:
        return f"EncryptedPayload(ciphertext=<{len(self.ciphertext)} bytes>, symmetric_key=<redacted>)"


class ReturnValueTest(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: str = ""
    comparator: str = "="
    value: str = "true"


class ConditionClause(BaseModel):
    """One access-policy clause: call `function_name(*function_params)` on a contract and test the result."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    contract_address: str = Field(..., alias="contractAddress")
    function_name: str = Field(..., alias="functionName")
    function_params: list[str] = Field(..., alias="functionParams")
    chain: str
    return_value_test: ReturnValueTest = Field(default_factory=ReturnValueTest, alias="returnValueTest")


class TransactionHandle(BaseModel):
    model_config = ConfigDict(frozen=True)
    tx_hash: str
    sender: str
    content_hash: str


class Receipt(BaseModel):
    model_config = ConfigDict(frozen=True)
    tx_hash: str
    gas_used: int
    block_number: int


class EncryptionBackend(ABC):
    @abstractmethod
    async def encrypt(self, data: bytes) -> Result:
        """Return Ok(EncryptedPayload) with a fresh symmetric key."""
        raise NotImplementedError

    @abstractmethod
    async def decrypt(self, ciphertext: bytes, key: bytes) -> Result:
        """Return Ok(plaintext bytes)."""
        raise NotImplementedError


class AccessPolicy(ABC):
    @abstractmethod
    def build_condition(self, contract_name: str, predicate: str, args: list[Any]) -> ConditionClause:
        raise NotImplementedError

    @abstractmethod
    async def encrypt_key_under_conditions(self, symmetric_key: bytes, conditions: list[ConditionClause]) -> Result:
        """Return Ok(sealed key bytes) releasable only when `conditions` hold."""
        raise NotImplementedError

    @abstractmethod
    async def decrypt_key(self, encrypted_key: bytes, conditions: list[ConditionClause], user_address: str) -> Result:
        """Evaluate `conditions` for `user_address`; return Ok(symmetric key) or Err(AccessDenied)."""
        raise NotImplementedError


class ContentStore(ABC):
    @abstractmethod
    async def put(self, data: bytes, filename: Optional[str] = None) -> Result:
        """Return Ok(content address) of `data`."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, cid: str) -> Result:
        """Return Ok(bytes) stored under `cid`."""
        raise NotImplementedError


class Chain(ABC):
    @abstractmethod
    def contract_address(self, contract_name: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def get_price(self) -> int:
        """Current publish price in wei; never cached by callers."""
        raise NotImplementedError

    @abstractmethod
    async def submit(self, content_hash: str, metadata_uri: str, payment: int) -> Result:
        """Return Ok(TransactionHandle) once the network accepts the transaction."""
        raise NotImplementedError

    @abstractmethod
    async def await_confirmation(self, handle: TransactionHandle) -> Result:
        """Block until mined; return Ok(Receipt) or Err on revert. No timeout of its own."""
        raise NotImplementedError

    @abstractmethod
    async def find_transaction(self, content_hash: str) -> Result:
        """Return Ok(TransactionHandle) of a pending or mined publish of `content_hash`, or Ok(None)."""
        raise NotImplementedError

    @abstractmethod
    async def owner_of_block(self, content_hash: str, address: str) -> bool:
        raise NotImplementedError
