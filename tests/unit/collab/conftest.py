"""Shared fixtures for collaborator unit tests"""

import pytest
from sqlmodel import SQLModel, Session

from blockpub.collab.access import LocalAccessPolicy
from blockpub.collab.chain import LocalChain
from blockpub.collab.storage import LocalContentStore
from blockpub.crud.database import init_db, make_engine


OWNER = "0x00000000000000000000000000000000000000a1"


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture(name="store")
def store_fixture(engine):
    return LocalContentStore(engine)


@pytest.fixture(name="chain")
def chain_fixture(engine):
    return LocalChain(engine, account=OWNER, price=100, poll_interval=0.01)


@pytest.fixture(name="policy")
def policy_fixture(chain):
    return LocalAccessPolicy(chain, b"\x07" * 32)
