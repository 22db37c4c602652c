"""Content-addressed object persistence"""

from sqlmodel import Session

from blockpub.core.utils.cid import make_cid
from blockpub.crud.models import StoredObject


def put_object(session: Session, data: bytes, filename: str | None = None) -> tuple[str, bool]:
    """Store `data` under its CID. Returns (cid, created); identical bytes are stored once.

    Flushes but does not commit; caller controls the transaction.
    """
    cid = make_cid(data)
    if session.get(StoredObject, cid) is not None:
        return cid, False
    session.add(StoredObject(cid=cid, filename=filename, size=len(data), data=data))
    session.flush()
    return cid, True


def get_object(session: Session, cid: str) -> StoredObject | None:
    """Return the object stored under `cid`, or None if not found."""
    return session.get(StoredObject, cid)
