"""Shared fixtures for core unit tests: the sample document and in-memory collaborators"""

import asyncio

import pytest

from blockpub.collab.interfaces import (
    AccessPolicy, Chain, ConditionClause, ContentStore, EncryptedPayload, EncryptionBackend,
    Receipt, TransactionHandle,
)
from blockpub.config import Settings
from blockpub.core.models import BlockType
from blockpub.core.result import Err, Ok
from blockpub.core.tree import DocumentTree, make_node
from blockpub.core.utils.cid import make_cid


def build_sample_tree() -> DocumentTree:
    """Container[Heading 'Hello!', Paragraph, Link to https://crcls.xyz] with fixed ids."""
    tree = DocumentTree()
    tree.insert("root", make_node(BlockType.heading, {"text": "Hello!", "level": 1}, "heading-1"))
    tree.insert("root", make_node(BlockType.paragraph, {"text": "Welcome to the block."}, "paragraph-1"))
    tree.insert("root", make_node(BlockType.link, {"text": "Let's go!", "href": "https://crcls.xyz"}, "link-1"))
    return tree


class FakeEncryption(EncryptionBackend):
    """Reversible stand-in: ciphertext is the key followed by the plaintext."""

    def __init__(self):
        self.calls = 0
        self.fail = False

    async def encrypt(self, data):
        self.calls += 1
        if self.fail:
            return Err(RuntimeError("entropy source unavailable"))
        key = bytes([self.calls]) * 32
        return Ok(EncryptedPayload(ciphertext=key + data, symmetric_key=key))

    async def decrypt(self, ciphertext, key):
        if ciphertext[:32] != key:
            return Err(ValueError("wrong key"))
        return Ok(ciphertext[32:])


class FakeAccess(AccessPolicy):
    def __init__(self):
        self.calls = 0
        self.fail = False

    def build_condition(self, contract_name, predicate, args):
        return ConditionClause(
            contract_address=f"0x{contract_name}",
            function_name=predicate,
            function_params=[str(a) for a in args],
            chain="mumbai",
        )

    async def encrypt_key_under_conditions(self, symmetric_key, conditions):
        self.calls += 1
        if self.fail:
            return Err(ConnectionError("key network unreachable"))
        return Ok(b"sealed:" + symmetric_key)

    async def decrypt_key(self, encrypted_key, conditions, user_address):
        return Ok(encrypted_key[len(b"sealed:"):])


class RecordingStore(ContentStore):
    """Dict-backed store that records every put and can fail uploads by filename."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.puts: list[str] = []
        self.fail_on: set[str] = set()

    async def put(self, data, filename=None):
        self.puts.append(filename)
        if filename in self.fail_on:
            return Err(OSError("gateway timeout"))
        cid = make_cid(data)
        self.objects[cid] = data
        return Ok(cid)

    async def get(self, cid):
        if cid not in self.objects:
            return Err(LookupError(cid))
        return Ok(self.objects[cid])


class FakeChain(Chain):
    """Chain stand-in whose submit/confirm outcomes are set per test."""

    def __init__(self, price: int = 7):
        self.price = price
        self.price_calls = 0
        self.submitted: list[tuple[str, str, int]] = []
        self.confirm_calls = 0
        self.existing: TransactionHandle = None
        self.reject_with: Exception = None
        self.revert_with: Exception = None
        self.confirm_delay = 0.0

    def contract_address(self, contract_name):
        return f"0x{contract_name}"

    async def get_price(self):
        self.price_calls += 1
        return self.price

    async def submit(self, content_hash, metadata_uri, payment):
        if self.reject_with is not None:
            return Err(self.reject_with)
        self.submitted.append((content_hash, metadata_uri, payment))
        return Ok(TransactionHandle(tx_hash=f"0x{len(self.submitted):064x}", sender="0xabc", content_hash=content_hash))

    async def await_confirmation(self, handle):
        self.confirm_calls += 1
        if self.confirm_delay:
            await asyncio.sleep(self.confirm_delay)
        if self.revert_with is not None:
            return Err(self.revert_with)
        return Ok(Receipt(tx_hash=handle.tx_hash, gas_used=50_000, block_number=1))

    async def find_transaction(self, content_hash):
        return Ok(self.existing)

    async def owner_of_block(self, content_hash, address):
        return True


@pytest.fixture(name="tree")
def tree_fixture():
    return build_sample_tree()


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(confirmation_timeout=1.0, poll_interval=0.01, max_image_bytes=1024)


@pytest.fixture(name="encryption")
def encryption_fixture():
    return FakeEncryption()


@pytest.fixture(name="access")
def access_fixture():
    return FakeAccess()


@pytest.fixture(name="storage")
def storage_fixture():
    return RecordingStore()


@pytest.fixture(name="chain")
def chain_fixture():
    return FakeChain()


@pytest.fixture(name="collaborators")
def collaborators_fixture(encryption, access, storage, chain, settings):
    return {
        "encryption": encryption, "access": access, "storage": storage,
        "chain": chain, "settings": settings,
    }
