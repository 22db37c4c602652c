"""CLI command implementations"""

import asyncio
import mimetypes
import re
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from pydantic import ValidationError
from sqlmodel import Session

from blockpub.collab.local import make_local_backends
from blockpub.config import Settings, configure_logging, load_config
from blockpub.core.errors import AccessDenied, BlockpubError, PublishError, TreeError
from blockpub.core.metadata import parse_tags
from blockpub.core.models import BlockNode, Connection, ImageUpload, PublishRequest
from blockpub.core.pipeline import Publisher
from blockpub.core.retrieve import open_block
from blockpub.core.tree import DocumentTree
from blockpub.crud.database import init_db, make_engine, reset_db
from blockpub.crud.publications import list_publications, save_publication


_INT_RE = re.compile(r"-?\d+")


def _fail(msg: str, cause: Exception = None) -> NoReturn:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling, then configure logging."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    configure_logging(settings.log_level)
    return settings


def _engine(settings: Settings):
    engine = make_engine(settings.db_url)
    init_db(engine)
    return engine


def _load_tree(path: Path) -> DocumentTree:
    if not path.exists():
        _fail(f"No document at {path}. Run 'blockpub new' first.")
    try:
        return DocumentTree.load(path)
    except TreeError as e:
        _fail(f"Cannot read {path}", e)


def _parse_props(items: list[str]) -> dict:
    """Parse repeated key=value options; integer-looking values become ints."""
    props = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            _fail(f"Invalid --prop '{item}', expected key=value")
        props[key.strip()] = int(value) if _INT_RE.fullmatch(value) else value
    return props


def _parse_connections(items: list[str]) -> list[Connection]:
    """Parse repeated kind:target options (e.g. 'node:form-1', 'integration:moonmail')."""
    conns = []
    for item in items:
        kind, sep, target = item.partition(":")
        try:
            conns.append(Connection(kind=kind, target=target))
        except ValidationError:
            _fail(f"Invalid --connect '{item}', expected node:<id> or integration:<name>")
    return conns


def _outline(node: BlockNode, depth: int = 0) -> list[str]:
    props = " ".join(f"{k}={v!r}" for k, v in sorted(node.props.items()))
    conns = "".join(f" -> {c.kind}:{c.target}" for c in node.connections)
    lines = [f"{'  ' * depth}{node.type.value} [{node.id}]{' ' + props if props else ''}{conns}"]
    for child in node.children:
        lines.extend(_outline(child, depth + 1))
    return lines


def _read_image(path: Path) -> ImageUpload:
    if not path.is_file():
        _fail(f"Image not found: {path}")
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return ImageUpload(filename=path.name, content_type=content_type, data=path.read_bytes())


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize database schema. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        reset_db(engine)
        typer.echo("Existing data cleared.")
    else:
        init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")


def new_cmd(
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Document file")] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing document")] = False,
    ):
    """Start a new document with an empty root container."""
    settings = _settings(overrides={"document_file": file})
    path = Path(settings.document_file)
    if path.exists() and not force:
        _fail(f"{path} already exists. Use --force to overwrite.")
    DocumentTree().save(path)
    typer.echo(f"Created {path}")


def insert_cmd(
    target: Annotated[str, typer.Argument(help="Id of the block to drop into (the root is 'root')")],
    label: Annotated[str, typer.Argument(help="Block type label, e.g. heading or PRIMITIVE_BUTTON")],
    prop: Annotated[Optional[list[str]], typer.Option("--prop", "-p", help="Block prop as key=value")] = None,
    connect: Annotated[Optional[list[str]], typer.Option("--connect", help="Reference as node:<id> or integration:<name>")] = None,
    node_id: Annotated[Optional[str], typer.Option("--id", help="Explicit id for the new block")] = None,
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Document file")] = None,
    ):
    """Insert a new block under TARGET."""
    settings = _settings(overrides={"document_file": file})
    path = Path(settings.document_file)
    tree = _load_tree(path)
    props = _parse_props(prop or [])
    connections = _parse_connections(connect or [])
    try:
        node = tree.drop(target, label, props, node_id, connections)
    except TreeError as e:
        _fail(str(e))
    tree.save(path)
    typer.echo(f"Inserted {node.type.value} [{node.id}] under [{target}]")


def show_cmd(
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Document file")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the canonical serialized form")] = False,
    ):
    """Print the document tree."""
    settings = _settings(overrides={"document_file": file})
    tree = _load_tree(Path(settings.document_file))
    if as_json:
        typer.echo(tree.serialize().decode("utf-8"))
        return
    for line in _outline(tree.root):
        typer.echo(line)


def publish_cmd(
    name: Annotated[str, typer.Option("--name", help="Block name")],
    description: Annotated[str, typer.Option("--description", help="Block description")] = "",
    tags: Annotated[Optional[str], typer.Option("--tags", help="Comma-separated tags")] = None,
    image: Annotated[Optional[Path], typer.Option("--image", help="Cover image file")] = None,
    account: Annotated[Optional[str], typer.Option("--account", help="Publishing wallet address")] = None,
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Document file")] = None,
    ):
    """Encrypt, store, and mint the document as a block NFT."""
    settings = _settings(overrides={"document_file": file, "account": account})
    engine = _engine(settings)
    tree = _load_tree(Path(settings.document_file))

    try:
        request = PublishRequest(
            name=name,
            description=description,
            tags=parse_tags(tags),
            image=_read_image(image) if image else None,
        )
    except ValidationError as e:
        _fail("Invalid metadata", e)

    backends = make_local_backends(settings, engine)
    try:
        publisher = Publisher.for_tree(
            tree, request, settings=settings, on_progress=lambda m: typer.echo(f"  {m}"),
            **backends.as_kwargs(),
        )
    except TreeError as e:
        _fail("Document is not publishable", e)

    try:
        receipt = asyncio.run(publisher.run())
    except PublishError as e:
        _fail(f"Publish failed at stage '{e.stage}'", e)

    with Session(engine) as session:
        save_publication(session, publisher.request, publisher.context)
        session.commit()
    typer.echo(f"Metadata: {publisher.context['metadata_uri']}")
    typer.echo(f"Transaction: {receipt.tx_hash} (block {receipt.block_number}, gas used {receipt.gas_used})")
    publisher.discard()


def list_cmd():
    """List blocks published from this database."""
    settings = _settings()
    engine = _engine(settings)
    with Session(engine) as session:
        pubs = list_publications(session)
    if not pubs:
        typer.echo("No published blocks found.")
        raise typer.Exit(1)
    for p in pubs:
        typer.echo(f"{p.published_at:%Y-%m-%d %H:%M}  {p.name}  {p.metadata_uri}  tx={p.tx_hash}")


def open_cmd(
    metadata: Annotated[str, typer.Argument(help="Metadata CID or ipfs:// URI")],
    account: Annotated[Optional[str], typer.Option("--account", help="Address requesting access")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the canonical serialized form")] = False,
    ):
    """Decrypt a published block as its owner."""
    settings = _settings(overrides={"account": account})
    engine = _engine(settings)
    backends = make_local_backends(settings, engine)
    try:
        meta, tree = asyncio.run(open_block(
            metadata, settings.account, backends.storage, backends.access, backends.encryption,
        ))
    except AccessDenied as e:
        _fail("Access denied", e)
    except BlockpubError as e:
        _fail("Cannot open block", e)

    if as_json:
        typer.echo(tree.serialize().decode("utf-8"))
        return
    typer.echo(f"{meta.name}: {meta.description}")
    for line in _outline(tree.root):
        typer.echo(line)
