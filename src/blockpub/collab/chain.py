"""Single-node local chain hosting the block NFT contract"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from blockpub.collab.interfaces import Chain, Receipt, TransactionHandle
from blockpub.core.result import Err, Ok, Result
from blockpub.core.utils.hashing import sha256
from blockpub.crud.ledger import (
    find_open_transaction, get_token, get_transaction, mine_pending, record_transaction,
)
from blockpub.crud.models import ChainTransaction, TxStatus


logger = logging.getLogger(__name__)


def _handle(tx: ChainTransaction) -> TransactionHandle:
    return TransactionHandle(tx_hash=tx.tx_hash, sender=tx.sender, content_hash=tx.content_hash)


class LocalChain(Chain):
    """Prices, accepts and mines publish transactions for one sender account.

    With `auto_mine` on, pending transactions are mined on the next
    confirmation poll; otherwise they stay pending until `mine()` is called.
    """

    def __init__(
        self,
        engine,
        account: str,
        contract_name: str = "BUIBlockNFT",
        price: int = 0,
        poll_interval: float = 0.5,
        auto_mine: bool = True,
        ):
        self.engine = engine
        self.account = account
        self.contract_name = contract_name
        self.price = price
        self.poll_interval = poll_interval
        self.auto_mine = auto_mine

    def contract_address(self, contract_name: str) -> str:
        return "0x" + sha256(f"contract:{contract_name}")[:40]

    def mine(self) -> int:
        """Mine all pending transactions into one block. Returns how many were included."""
        with Session(self.engine) as session:
            mined = mine_pending(session)
            session.commit()
        if mined:
            logger.info("Mined block with %d transaction(s)", len(mined))
        return len(mined)

    async def get_price(self) -> int:
        return self.price

    async def submit(self, content_hash: str, metadata_uri: str, payment: int) -> Result:
        if not self.account:
            return Err(PermissionError("Please connect your wallet."))
        if payment < self.price:
            return Err(ValueError(f"Insufficient payment: sent {payment} wei, price is {self.price} wei"))
        try:
            with Session(self.engine) as session:
                if get_token(session, content_hash) is not None:
                    return Err(ValueError(f"Block {content_hash} is already published"))
                tx = record_transaction(session, self.account, content_hash, metadata_uri, payment)
                handle = _handle(tx)
                session.commit()
        except SQLAlchemyError as e:
            return Err(e)
        logger.info("Accepted tx %s from %s", handle.tx_hash, handle.sender)
        return Ok(handle)

    async def await_confirmation(self, handle: TransactionHandle) -> Result:
        while True:
            try:
                if self.auto_mine:
                    self.mine()
                with Session(self.engine) as session:
                    tx = get_transaction(session, handle.tx_hash)
                    if tx is None:
                        return Err(LookupError(f"Unknown transaction {handle.tx_hash}"))
                    status, gas_used, block_number, reason = tx.status, tx.gas_used, tx.block_number, tx.reason
            except SQLAlchemyError as e:
                return Err(e)
            if status == TxStatus.mined:
                return Ok(Receipt(tx_hash=handle.tx_hash, gas_used=gas_used, block_number=block_number))
            if status == TxStatus.reverted:
                return Err(RuntimeError(f"Transaction {handle.tx_hash} reverted: {reason}"))
            await asyncio.sleep(self.poll_interval)

    async def find_transaction(self, content_hash: str) -> Result:
        try:
            with Session(self.engine) as session:
                tx = find_open_transaction(session, content_hash, self.account)
                return Ok(_handle(tx) if tx is not None else None)
        except SQLAlchemyError as e:
            return Err(e)

    async def owner_of_block(self, content_hash: str, address: str) -> bool:
        with Session(self.engine) as session:
            token = get_token(session, content_hash)
            return token is not None and token.owner.lower() == address.lower()
