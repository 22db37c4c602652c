"""Content identifiers: CIDv1 (raw codec, sha2-256) in base32 multibase"""

import base64

from blockpub.core.utils.hashing import sha256_digest


CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12
DIGEST_SIZE = 0x20

_HEADER = bytes([CID_VERSION, RAW_CODEC, SHA2_256, DIGEST_SIZE])
_MULTIBASE_BASE32 = "b"


def make_cid(data: bytes) -> str:
    """Derive the content address of `data`; identical bytes always give the identical CID."""
    raw = _HEADER + sha256_digest(data)
    return _MULTIBASE_BASE32 + base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def cid_digest(cid: str) -> bytes:
    """Return the 32-byte sha2-256 digest embedded in `cid`. Raises ValueError if malformed."""
    if not isinstance(cid, str) or not cid.startswith(_MULTIBASE_BASE32) or len(cid) < 2:
        raise ValueError(f"Malformed CID: {cid!r}")
    body = cid[1:].upper()
    try:
        raw = base64.b32decode(body + "=" * (-len(body) % 8))
    except ValueError as e:
        raise ValueError(f"Malformed CID: {cid!r}") from e
    if len(raw) != len(_HEADER) + DIGEST_SIZE or raw[:len(_HEADER)] != _HEADER:
        raise ValueError(f"Unsupported CID (expected v1 raw sha2-256): {cid!r}")
    return raw[len(_HEADER):]


def cid_to_bytes32(cid: str) -> str:
    """0x-prefixed hex of the CID digest, the form the block contract keys tokens by."""
    return "0x" + cid_digest(cid).hex()


def ipfs_uri(cid: str, filename: str = None) -> str:
    return f"ipfs://{cid}/{filename}" if filename else f"ipfs://{cid}"


def cid_from_uri(uri: str) -> str:
    """Extract the CID from an ipfs:// URI (or return a bare CID unchanged)."""
    if uri.startswith("ipfs://"):
        uri = uri[len("ipfs://"):]
    return uri.split("/", 1)[0]
