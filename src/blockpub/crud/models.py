"""Database table definitions for stored objects, the local chain ledger, and publications"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, DateTime, LargeBinary, String, Text
from sqlmodel import Field, SQLModel


class StoredObject(SQLModel, table=True):
    """An immutable blob keyed by its content address"""
    __tablename__ = "objects"
    cid: str = Field(..., sa_column=Column(String(80), primary_key=True))
    filename: Optional[str] = Field(default=None, description="Name the object was uploaded under")
    size: int = Field(..., nullable=False)
    data: bytes = Field(..., sa_column=Column(LargeBinary, nullable=False))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))


class TxStatus(str, Enum):
    """Lifecycle of a submitted publish transaction"""
    pending = "pending"
    mined = "mined"
    reverted = "reverted"


class ChainTransaction(SQLModel, table=True):
    """A publish transaction accepted by the local chain"""
    __tablename__ = "transactions"
    tx_hash: str = Field(..., sa_column=Column(String(66), primary_key=True))
    sender: str = Field(..., index=True, nullable=False)
    content_hash: str = Field(..., index=True, nullable=False)
    metadata_uri: str = Field(..., sa_column=Column(Text, nullable=False))
    value: int = Field(..., sa_column=Column(BigInteger, nullable=False), description="Payment in wei")
    status: TxStatus = Field(default=TxStatus.pending, nullable=False)
    gas_used: Optional[int] = Field(default=None)
    block_number: Optional[int] = Field(default=None)
    reason: Optional[str] = Field(default=None, description="Revert reason")
    submitted_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    mined_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))


class BlockToken(SQLModel, table=True):
    """Ownership record minted for a published block, keyed by document content hash"""
    __tablename__ = "block_tokens"
    id: Optional[int] = Field(default=None, primary_key=True)
    content_hash: str = Field(..., sa_column=Column(String(66), unique=True, nullable=False))
    owner: str = Field(..., index=True, nullable=False)
    metadata_uri: str = Field(..., sa_column=Column(Text, nullable=False))
    tx_hash: str = Field(..., foreign_key="transactions.tx_hash", nullable=False)
    minted_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))


class Publication(SQLModel, table=True):
    """A confirmed publish, recorded for the publisher's own listing"""
    __tablename__ = "publications"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(..., nullable=False)
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    document_cid: str = Field(..., index=True, nullable=False)
    metadata_cid: str = Field(..., index=True, nullable=False)
    metadata_uri: str = Field(..., sa_column=Column(Text, nullable=False))
    image_uri: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    content_hash: str = Field(..., nullable=False)
    tx_hash: str = Field(..., nullable=False)
    gas_used: int = Field(..., nullable=False)
    published_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
