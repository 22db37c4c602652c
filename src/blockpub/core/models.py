"""Block document data models: block types, prop schemas, nesting rules"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from blockpub.core.errors import InvalidProps


class BlockType(str, Enum):
    """Closed set of block kinds a document may contain"""
    container = "container"
    heading = "heading"
    paragraph = "paragraph"
    link = "link"
    form = "form"
    external_connector = "external-connector"
    button = "button"


PROP_SCHEMAS: dict[BlockType, dict[str, type]] = {
    BlockType.container:          {"class_name": str},
    BlockType.heading:            {"text": str, "level": int},
    BlockType.paragraph:          {"text": str},
    BlockType.link:               {"text": str, "href": str},
    BlockType.form:               {"name": str, "action": str},
    BlockType.external_connector: {"provider": str, "list_id": str},
    BlockType.button:             {"label": str, "kind": str},
}

# (type, prop) -> (predicate, human-readable constraint)
PROP_CONSTRAINTS = {
    (BlockType.heading, "level"): (lambda v: 1 <= v <= 6, "between 1 and 6"),
    (BlockType.button, "kind"):   (lambda v: v in ("submit", "button"), "'submit' or 'button'"),
}

_FORM_CHILDREN = frozenset({
    BlockType.heading, BlockType.paragraph, BlockType.link,
    BlockType.button, BlockType.external_connector,
})

ALLOWED_CHILDREN: dict[BlockType, frozenset[BlockType]] = {
    BlockType.container: frozenset(BlockType),
    BlockType.form: _FORM_CHILDREN,
}


def accepts_child(parent: BlockType, child: BlockType) -> bool:
    """Return True when a `parent` block may own a `child` block; leaf types own nothing."""
    return child in ALLOWED_CHILDREN.get(parent, frozenset())


def check_props(block_type: BlockType, props: dict[str, Any]) -> None:
    """Raise InvalidProps unless every prop key and value matches the type's schema."""
    schema = PROP_SCHEMAS[block_type]
    for key, value in props.items():
        expected = schema.get(key)
        if expected is None:
            raise InvalidProps(f"'{block_type.value}' blocks have no prop '{key}'")
        # bool is an int subclass; reject it where a number is expected
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise InvalidProps(
                f"Prop '{key}' of a '{block_type.value}' block must be {expected.__name__}, "
                f"got {type(value).__name__}"
            )
        rule = PROP_CONSTRAINTS.get((block_type, key))
        if rule and not rule[0](value):
            raise InvalidProps(f"Prop '{key}' of a '{block_type.value}' block must be {rule[1]}")


class Connection(BaseModel):
    """A reference from one block to another block or an external integration."""
    kind: Literal["node", "integration"]
    target: str = Field(..., min_length=1)


class BlockNode(BaseModel):
    """A single typed block; owns its children, references its connections."""
    id: str = Field(..., min_length=1)
    type: BlockType
    props: dict[str, Any] = Field(default_factory=dict)
    connections: list[Connection] = Field(default_factory=list)
    children: list["BlockNode"] = Field(default_factory=list)

    @model_validator(mode="after")
    def _props_match_type(self) -> "BlockNode":
        check_props(self.type, self.props)
        return self

    def walk(self):
        """Yield this node and every descendant, depth-first, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_canonical(self) -> dict[str, Any]:
        """Plain dict with every field present, enum values unwrapped."""
        return {
            "id": self.id,
            "type": self.type.value,
            "props": dict(self.props),
            "connections": [c.model_dump() for c in self.connections],
            "children": [c.to_canonical() for c in self.children],
        }


class ImageUpload(BaseModel):
    """A cover image as received from the metadata form."""
    filename: str
    content_type: str
    data: bytes

    def __repr__(self) -> str:
        return f"ImageUpload(filename={self.filename!r}, content_type={self.content_type!r}, size={len(self.data)})"


class PublishRequest(BaseModel):
    """Metadata form fields for one publish attempt."""
    name: str = Field(..., min_length=1)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    image: Optional[ImageUpload] = None
