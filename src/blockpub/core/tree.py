"""Document tree: insert-only mutation, canonical serialization, and drag-label normalization"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError

from blockpub.core.errors import (
    DuplicateId, InvalidProps, NodeNotFound, TreeError, UnknownBlockType, UnsupportedNesting,
)
from blockpub.core.models import BlockNode, BlockType, Connection, accepts_child, check_props
from blockpub.core.utils.canonical import canonical_json


logger = logging.getLogger(__name__)

ROOT_ID = "root"

# Splits on separators and on lower->Upper camel-case boundaries
_LABEL_SPLIT_RE = re.compile(r"[\s_\-]+|(?<=[a-z0-9])(?=[A-Z])")

LABEL_ALIASES: dict[str, BlockType] = {
    "connector": BlockType.external_connector,
    "moonmail-connector": BlockType.external_connector,
}


def type_from_raw_label(label: str) -> BlockType:
    """Normalize a drag source label (e.g. 'PRIMITIVE_BUTTON', 'MoonmailConnector') to a BlockType."""
    if not isinstance(label, str):
        raise UnknownBlockType(repr(label))
    parts = [p.lower() for p in _LABEL_SPLIT_RE.split(label.strip()) if p]
    if parts and parts[0] == "primitive":
        parts = parts[1:]
    key = "-".join(parts)
    if key in LABEL_ALIASES:
        return LABEL_ALIASES[key]
    try:
        return BlockType(key)
    except ValueError:
        raise UnknownBlockType(label) from None


def new_node_id(block_type: BlockType) -> str:
    return f"{block_type.value}-{uuid4().hex[:8]}"


def make_node(
    block_type: BlockType,
    props: dict[str, Any] = None,
    node_id: str = None,
    connections: list[Connection] = None,
    ) -> BlockNode:
    """Build a childless BlockNode, mapping schema failures to InvalidProps."""
    try:
        return BlockNode(
            id=node_id or new_node_id(block_type),
            type=block_type,
            props=props or {},
            connections=connections or [],
        )
    except ValidationError as e:
        raise InvalidProps(e.errors()[0]["msg"]) from e


@dataclass(frozen=True)
class InsertNode:
    """Command: append `node` (with its subtree) to the children of `target_id`."""
    target_id: str
    node: BlockNode


class DocumentTree:
    """The block document owned by one editing session.

    The root is always a container with id 'root'. The only mutation is
    `apply(InsertNode)`; accessors hand out deep copies so callers cannot
    edit descendants in place.
    """

    def __init__(self, root: Optional[BlockNode] = None):
        self._root = root.model_copy(deep=True) if root else BlockNode(id=ROOT_ID, type=BlockType.container)
        self.validate()

    @property
    def root(self) -> BlockNode:
        return self._root.model_copy(deep=True)

    def _find(self, node_id: str) -> BlockNode:
        for node in self._root.walk():
            if node.id == node_id:
                return node
        raise NodeNotFound(node_id)

    def find(self, node_id: str) -> BlockNode:
        """Return a copy of the node with `node_id`; NodeNotFound if absent."""
        return self._find(node_id).model_copy(deep=True)

    def ids(self) -> list[str]:
        return [n.id for n in self._root.walk()]

    def __len__(self) -> int:
        return len(self.ids())

    def apply(self, command: InsertNode) -> BlockNode:
        """Validate then append the command's subtree; the tree is untouched on any failure."""
        target = self._find(command.target_id)
        node = command.node.model_copy(deep=True)
        if not accepts_child(target.type, node.type):
            raise UnsupportedNesting(target.type.value, node.type.value)

        existing = set(self.ids())
        seen: set[str] = set()
        for n in node.walk():
            if n.id in existing or n.id in seen:
                raise DuplicateId(n.id)
            seen.add(n.id)
            check_props(n.type, n.props)
            for child in n.children:
                if not accepts_child(n.type, child.type):
                    raise UnsupportedNesting(n.type.value, child.type.value)
        known = existing | seen
        for n in node.walk():
            for conn in n.connections:
                if conn.kind == "node" and conn.target not in known:
                    raise NodeNotFound(conn.target)

        target.children.append(node)
        logger.debug("Inserted %s '%s' under '%s'", node.type.value, node.id, target.id)
        return node.model_copy(deep=True)

    def insert(self, target_id: str, node: BlockNode) -> BlockNode:
        return self.apply(InsertNode(target_id=target_id, node=node))

    def drop(
        self,
        target_id: str,
        raw_label: str,
        props: dict[str, Any] = None,
        node_id: str = None,
        connections: list[Connection] = None,
        ) -> BlockNode:
        """Handle an editor drop event: normalize the label, build a fresh node, insert it."""
        node = make_node(type_from_raw_label(raw_label), props, node_id, connections)
        return self.apply(InsertNode(target_id=target_id, node=node))

    def validate(self) -> None:
        """Check every tree invariant, raising the matching TreeError."""
        if self._root.type != BlockType.container:
            raise UnsupportedNesting("document", self._root.type.value)
        seen: set[str] = set()
        for node in self._root.walk():
            if node.id in seen:
                raise DuplicateId(node.id)
            seen.add(node.id)
            check_props(node.type, node.props)
            for child in node.children:
                if not accepts_child(node.type, child.type):
                    raise UnsupportedNesting(node.type.value, child.type.value)
        for node in self._root.walk():
            for conn in node.connections:
                if conn.kind == "node" and conn.target not in seen:
                    raise NodeNotFound(conn.target)

    def serialize(self) -> bytes:
        """Canonical bytes of the whole tree: sorted keys, children in insertion order."""
        return canonical_json(self._root.to_canonical())

    @classmethod
    def from_bytes(cls, data: bytes) -> "DocumentTree":
        try:
            root = BlockNode.model_validate(json.loads(data))
        except (ValueError, ValidationError) as e:
            raise TreeError(f"Invalid document: {e}") from e
        return cls(root)

    @classmethod
    def load(cls, path: Path) -> "DocumentTree":
        return cls.from_bytes(Path(path).read_bytes())

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.serialize())
        return path
