"""Publication records: save after confirmation, list"""

from sqlmodel import Session, select

from blockpub.core.context import PublishContext
from blockpub.core.models import PublishRequest
from blockpub.crud.models import Publication


def save_publication(session: Session, request: PublishRequest, context: PublishContext) -> Publication:
    """Record a confirmed publish from its committed context. Flushes, does not commit."""
    handle = context["transaction_handle"]
    receipt = context["receipt"]
    pub = Publication(
        name=request.name,
        description=request.description,
        document_cid=context["document_cid"],
        metadata_cid=context["metadata_cid"],
        metadata_uri=context["metadata_uri"],
        image_uri=context.get("image_uri"),
        content_hash=handle.content_hash,
        tx_hash=receipt.tx_hash,
        gas_used=receipt.gas_used,
    )
    session.add(pub)
    session.flush()
    return pub


def list_publications(session: Session) -> list[Publication]:
    """Return all publications, oldest first."""
    return list(session.exec(select(Publication).order_by(Publication.published_at.asc())).all())
