"""NFT metadata derived from a publish attempt"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from blockpub.collab.interfaces import ConditionClause
from blockpub.core.utils.canonical import canonical_json


class BuiProperties(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    cid: str
    encrypted_key: str = Field(..., alias="encryptedKey")
    auth_conditions: list[ConditionClause] = Field(..., alias="authConditions")
    tags: list[str] = Field(default_factory=list)


class NFTMetadata(BaseModel):
    """Token metadata: `{description, image, name, buiProperties: {cid, encryptedKey, authConditions, tags}}`."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    description: str
    image: str = ""
    name: str
    bui_properties: BuiProperties = Field(..., alias="buiProperties")

    def to_json_bytes(self) -> bytes:
        return canonical_json(self.model_dump(by_alias=True, mode="json"))

    @classmethod
    def from_json_bytes(cls, data: bytes) -> "NFTMetadata":
        return cls.model_validate_json(data)


def parse_tags(raw: Optional[str]) -> list[str]:
    """Split a comma-separated tag field, dropping blanks and duplicates (first occurrence wins)."""
    if not raw:
        return []
    return list(dict.fromkeys(t.strip() for t in raw.split(",") if t.strip()))


def build_metadata(
    name: str,
    description: str,
    document_cid: str,
    encrypted_key: bytes,
    conditions: list[ConditionClause],
    image_uri: Optional[str] = None,
    tags: list[str] = (),
    ) -> NFTMetadata:
    """Compose metadata; the sealed key is rendered as lowercase base16."""
    return NFTMetadata(
        description=description,
        image=image_uri or "",
        name=name,
        bui_properties=BuiProperties(
            cid=document_cid,
            encrypted_key=encrypted_key.hex(),
            auth_conditions=list(conditions),
            tags=list(tags),
        ),
    )
