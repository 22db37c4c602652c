"""Content-addressed storage backed by the blockpub database"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from blockpub.collab.interfaces import ContentStore
from blockpub.core.result import Err, Ok, Result
from blockpub.crud.objects import get_object, put_object


logger = logging.getLogger(__name__)


class LocalContentStore(ContentStore):
    def __init__(self, engine):
        self.engine = engine

    async def put(self, data: bytes, filename: str = None) -> Result:
        if not isinstance(data, (bytes, bytearray)):
            return Err(TypeError(f"Expected bytes, got {type(data).__name__}"))
        try:
            with Session(self.engine) as session:
                cid, created = put_object(session, bytes(data), filename)
                session.commit()
        except SQLAlchemyError as e:
            return Err(e)
        logger.debug("%s %s (%d bytes, %s)", "Stored" if created else "Already stored", cid, len(data), filename)
        return Ok(cid)

    async def get(self, cid: str) -> Result:
        try:
            with Session(self.engine) as session:
                obj = get_object(session, cid)
                data = obj.data if obj is not None else None
        except SQLAlchemyError as e:
            return Err(e)
        if data is None:
            return Err(LookupError(f"No object stored under {cid}"))
        return Ok(data)
