"""Local chain ledger: transaction records, mining, and block-token ownership"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import func
from sqlmodel import Session, select

from blockpub.core.utils.hashing import sha256
from blockpub.crud.models import BlockToken, ChainTransaction, TxStatus


BASE_GAS = 21_000
MINT_GAS = 20_000
GAS_PER_URI_BYTE = 16


def estimate_gas(metadata_uri: str) -> int:
    return BASE_GAS + MINT_GAS + GAS_PER_URI_BYTE * len(metadata_uri.encode("utf-8"))


def record_transaction(
    session: Session,
    sender: str,
    content_hash: str,
    metadata_uri: str,
    value: int,
    ) -> ChainTransaction:
    """Insert a pending transaction with a fresh 0x-prefixed hash. Flushes, does not commit."""
    tx = ChainTransaction(
        tx_hash="0x" + sha256(f"{sender}:{content_hash}:{metadata_uri}:{uuid4().hex}"),
        sender=sender,
        content_hash=content_hash,
        metadata_uri=metadata_uri,
        value=value,
    )
    session.add(tx)
    session.flush()
    return tx


def get_transaction(session: Session, tx_hash: str) -> ChainTransaction | None:
    return session.get(ChainTransaction, tx_hash)


def find_open_transaction(session: Session, content_hash: str, sender: str) -> ChainTransaction | None:
    """Return the newest pending or mined transaction publishing `content_hash` from `sender`."""
    return session.exec(
        select(ChainTransaction)
        .where(ChainTransaction.content_hash == content_hash)
        .where(ChainTransaction.sender == sender)
        .where(ChainTransaction.status != TxStatus.reverted)
        .order_by(ChainTransaction.submitted_at.desc())
    ).first()


def get_token(session: Session, content_hash: str) -> BlockToken | None:
    return session.exec(select(BlockToken).where(BlockToken.content_hash == content_hash)).one_or_none()


def latest_block_number(session: Session) -> int:
    return session.exec(select(func.max(ChainTransaction.block_number))).one() or 0


def mine_pending(session: Session) -> list[ChainTransaction]:
    """Include every pending transaction in one new block, oldest first.

    A transaction whose content hash already has a token reverts; otherwise a
    token is minted to the sender. Flushes but does not commit.
    """
    pending = list(session.exec(
        select(ChainTransaction)
        .where(ChainTransaction.status == TxStatus.pending)
        .order_by(ChainTransaction.submitted_at.asc())
    ).all())
    if not pending:
        return []

    block_number = latest_block_number(session) + 1
    now = datetime.now()
    for tx in pending:
        if get_token(session, tx.content_hash) is not None:
            tx.status = TxStatus.reverted
            tx.reason = "Block already published"
            tx.gas_used = BASE_GAS
        else:
            session.add(BlockToken(
                content_hash=tx.content_hash,
                owner=tx.sender,
                metadata_uri=tx.metadata_uri,
                tx_hash=tx.tx_hash,
            ))
            tx.status = TxStatus.mined
            tx.gas_used = estimate_gas(tx.metadata_uri)
        tx.block_number = block_number
        tx.mined_at = now
        session.add(tx)
        session.flush()
    return pending
