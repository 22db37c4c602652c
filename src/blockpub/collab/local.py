"""Wire the local collaborator implementations from Settings"""

from dataclasses import dataclass
from pathlib import Path

from blockpub.collab.access import LocalAccessPolicy, load_or_create_key
from blockpub.collab.chain import LocalChain
from blockpub.collab.encryption import SecretBoxEncryption
from blockpub.collab.storage import LocalContentStore
from blockpub.config import Settings


@dataclass
class Backends:
    encryption: SecretBoxEncryption
    access: LocalAccessPolicy
    storage: LocalContentStore
    chain: LocalChain

    def as_kwargs(self) -> dict:
        return {"encryption": self.encryption, "access": self.access, "storage": self.storage, "chain": self.chain}


def make_local_backends(settings: Settings, engine, account: str = None, auto_mine: bool = True) -> Backends:
    """Build every collaborator against one engine; `account` overrides settings.account."""
    chain = LocalChain(
        engine,
        account=account if account is not None else settings.account,
        contract_name=settings.contract_name,
        price=settings.publish_price,
        poll_interval=settings.poll_interval,
        auto_mine=auto_mine,
    )
    access = LocalAccessPolicy(chain, load_or_create_key(Path(settings.policy_key_file)), settings.chain)
    return Backends(
        encryption=SecretBoxEncryption(),
        access=access,
        storage=LocalContentStore(engine),
        chain=chain,
    )
