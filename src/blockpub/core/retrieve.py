"""Open a published block: fetch metadata, release the key, decrypt the document"""

import logging

from pydantic import ValidationError

from blockpub.collab.interfaces import AccessPolicy, ContentStore, EncryptionBackend
from blockpub.core.errors import AccessDenied, RetrievalFailed, TreeError
from blockpub.core.metadata import NFTMetadata
from blockpub.core.result import Err, Result
from blockpub.core.tree import DocumentTree
from blockpub.core.utils.cid import cid_from_uri


logger = logging.getLogger(__name__)


def _value(result: Result, message: str):
    if isinstance(result, Err):
        if isinstance(result.error, AccessDenied):
            raise result.error
        raise RetrievalFailed(f"{message}: {result.message}") from result.error
    return result.value


async def fetch_metadata(storage: ContentStore, metadata_ref: str) -> NFTMetadata:
    """Load metadata by CID or ipfs:// URI."""
    raw = _value(await storage.get(cid_from_uri(metadata_ref)), "Failed to fetch metadata")
    try:
        return NFTMetadata.from_json_bytes(raw)
    except ValidationError as e:
        raise RetrievalFailed(f"Invalid metadata at {metadata_ref}: {e}") from e


async def open_block(
    metadata_ref: str,
    user_address: str,
    storage: ContentStore,
    access: AccessPolicy,
    encryption: EncryptionBackend,
    ) -> tuple[NFTMetadata, DocumentTree]:
    """Return (metadata, document) for a block `user_address` is entitled to. Raises AccessDenied otherwise."""
    metadata = await fetch_metadata(storage, metadata_ref)
    props = metadata.bui_properties
    try:
        encrypted_key = bytes.fromhex(props.encrypted_key)
    except ValueError as e:
        raise RetrievalFailed(f"Metadata carries a malformed key: {e}") from e

    key = _value(
        await access.decrypt_key(encrypted_key, props.auth_conditions, user_address),
        "Failed to release block key",
    )
    ciphertext = _value(await storage.get(props.cid), "Failed to fetch block")
    data = _value(await encryption.decrypt(ciphertext, key), "Failed to decrypt block")
    try:
        tree = DocumentTree.from_bytes(data)
    except TreeError as e:
        raise RetrievalFailed(f"Decrypted block is not a valid document: {e}") from e
    logger.info("Opened block %s for %s", props.cid, user_address)
    return metadata, tree
