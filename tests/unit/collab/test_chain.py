"""Unit tests for collab/chain.py and crud/ledger.py"""

import asyncio

import pytest

from blockpub.collab.chain import LocalChain
from blockpub.collab.interfaces import TransactionHandle
from blockpub.core.result import Err, Ok
from blockpub.crud.ledger import estimate_gas, get_token, get_transaction
from blockpub.crud.models import TxStatus

OWNER = "0x00000000000000000000000000000000000000a1"
STRANGER = "0x00000000000000000000000000000000000000b2"


HASH = "0x" + "ab" * 32
URI = "ipfs://bafkmeta/metadata.json"


def _submit(chain, content_hash=HASH, payment=100):
    return asyncio.run(chain.submit(content_hash, URI, payment))


def test_contract_address_is_stable_per_name(chain):
    address = chain.contract_address("BUIBlockNFT")
    assert address == chain.contract_address("BUIBlockNFT")
    assert address.startswith("0x") and len(address) == 42
    assert address != chain.contract_address("OtherNFT")


def test_get_price(chain):
    assert asyncio.run(chain.get_price()) == 100


def test_submit_and_confirm_mints_token(chain, session):
    handle = _submit(chain).value
    assert handle.sender == OWNER
    assert handle.content_hash == HASH

    receipt = asyncio.run(chain.await_confirmation(handle)).value
    assert receipt.tx_hash == handle.tx_hash
    assert receipt.gas_used == estimate_gas(URI)
    assert receipt.block_number == 1

    token = get_token(session, HASH)
    assert token.owner == OWNER
    assert token.metadata_uri == URI


def test_submit_without_account_asks_for_wallet(engine):
    chain = LocalChain(engine, account="")
    result = _submit(chain)
    assert isinstance(result.error, PermissionError)
    assert result.message == "Please connect your wallet."


def test_submit_with_insufficient_payment(chain):
    result = _submit(chain, payment=99)
    assert isinstance(result, Err)
    assert "Insufficient payment" in result.message


def test_submit_already_published_block(chain):
    asyncio.run(chain.await_confirmation(_submit(chain).value))
    result = _submit(chain)
    assert isinstance(result, Err)
    assert "already published" in result.message


def test_second_pending_publish_of_same_block_reverts(chain, session):
    """Both land in one block; one mints the token and the other reverts."""
    handles = [_submit(chain).value, _submit(chain).value]
    results = [asyncio.run(chain.await_confirmation(h)) for h in handles]

    assert sorted(isinstance(r, Ok) for r in results) == [False, True]
    [reverted] = [r for r in results if isinstance(r, Err)]
    assert isinstance(reverted.error, RuntimeError)
    assert "Block already published" in reverted.message
    statuses = sorted(get_transaction(session, h.tx_hash).status.value for h in handles)
    assert statuses == [TxStatus.mined.value, TxStatus.reverted.value]


def test_pending_transaction_waits_for_mining(engine):
    chain = LocalChain(engine, account=OWNER, poll_interval=0.01, auto_mine=False)
    handle = _submit(chain).value

    async def confirm():
        waiter = asyncio.ensure_future(chain.await_confirmation(handle))
        await asyncio.sleep(0.05)
        assert not waiter.done()
        assert chain.mine() == 1
        return await waiter

    assert asyncio.run(confirm()).value.block_number == 1


def test_await_unknown_transaction(chain):
    handle = TransactionHandle(tx_hash="0xmissing", sender=OWNER, content_hash=HASH)
    result = asyncio.run(chain.await_confirmation(handle))
    assert isinstance(result.error, LookupError)


def test_find_transaction_returns_open_publish(chain):
    assert asyncio.run(chain.find_transaction(HASH)) == Ok(None)
    handle = _submit(chain).value
    assert asyncio.run(chain.find_transaction(HASH)) == Ok(handle)


def test_find_transaction_ignores_reverted(chain):
    handles = [_submit(chain).value, _submit(chain).value]
    results = {h.tx_hash: asyncio.run(chain.await_confirmation(h)) for h in handles}
    [mined] = [tx for tx, r in results.items() if isinstance(r, Ok)]
    assert asyncio.run(chain.find_transaction(HASH)).value.tx_hash == mined


def test_find_transaction_is_scoped_to_sender(engine, chain):
    _submit(chain)
    other = LocalChain(engine, account=STRANGER)
    assert asyncio.run(other.find_transaction(HASH)) == Ok(None)


@pytest.mark.parametrize("address,expected", [
    (OWNER, True),
    (OWNER.upper().replace("0X", "0x"), True),
    (STRANGER, False),
])
def test_owner_of_block(chain, address, expected):
    asyncio.run(chain.await_confirmation(_submit(chain).value))
    assert asyncio.run(chain.owner_of_block(HASH, address)) is expected


def test_owner_of_unpublished_block_is_false(chain):
    assert asyncio.run(chain.owner_of_block(HASH, OWNER)) is False
