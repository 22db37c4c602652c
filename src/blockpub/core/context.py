"""Working state of one publish attempt: write-once cells and the committed-stage index"""

from typing import Any, Generic, TypeVar

from blockpub.core.errors import InvariantViolation


T = TypeVar("T")

# Ordered stages and the cells each one commits.
STAGES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("encrypt_document",         ("ciphertext", "symmetric_key")),
    ("store_document",           ("document_cid",)),
    ("derive_access_conditions", ("access_conditions",)),
    ("encrypt_key",              ("encrypted_key",)),
    ("store_image",              ("image_cid", "image_uri")),
    ("build_metadata",           ("metadata",)),
    ("store_metadata",           ("metadata_cid", "metadata_uri")),
    ("submit_transaction",       ("transaction_handle",)),
    ("await_confirmation",       ("receipt",)),
)
STAGE_NAMES = tuple(name for name, _ in STAGES)
SECRET_FIELDS = ("symmetric_key", "encrypted_key")

_PRODUCED_BY = {field: i for i, (_, fields) in enumerate(STAGES, start=1) for field in fields}


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class WriteOnce(Generic[T]):
    """A cell that is Unset until set exactly once."""
    __slots__ = ("name", "_value")

    def __init__(self, name: str):
        self.name = name
        self._value: Any = UNSET

    @property
    def is_set(self) -> bool:
        return self._value is not UNSET

    def get(self) -> T:
        if self._value is UNSET:
            raise InvariantViolation(f"'{self.name}' read before it was set")
        return self._value

    def set(self, value: T) -> None:
        if self._value is not UNSET:
            raise InvariantViolation(f"'{self.name}' is write-once and already set")
        if value is None:
            raise InvariantViolation(f"'{self.name}' cannot be set to None")
        self._value = value

    def clear(self) -> None:
        self._value = UNSET

    def __repr__(self) -> str:
        return f"WriteOnce({self.name}={'<set>' if self.is_set else 'UNSET'})"


class PublishContext:
    """Owned by exactly one in-flight publish attempt.

    `step_index` counts committed stages (0..len(STAGES)). It only moves
    forward through `commit`, and backward through `rewind` or `clear`.
    """

    def __init__(self, serialized_document: bytes):
        if not isinstance(serialized_document, (bytes, bytearray)) or not serialized_document:
            raise InvariantViolation("serialized_document must be non-empty bytes")
        self._serialized = bytes(serialized_document)
        self._cells: dict[str, WriteOnce] = {f: WriteOnce(f) for f in _PRODUCED_BY}
        self._step_index = 0
        self.discarded = False

    @property
    def serialized_document(self) -> bytes:
        return self._serialized

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def next_stage(self) -> str | None:
        return STAGE_NAMES[self._step_index] if self._step_index < len(STAGES) else None

    def _cell(self, name: str) -> WriteOnce:
        if self.discarded:
            raise InvariantViolation("Publish context was discarded")
        try:
            return self._cells[name]
        except KeyError:
            raise InvariantViolation(f"Unknown context field '{name}'") from None

    def __getitem__(self, name: str) -> Any:
        return self._cell(name).get()

    def get(self, name: str, default: Any = None) -> Any:
        cell = self._cell(name)
        return cell.get() if cell.is_set else default

    def is_set(self, name: str) -> bool:
        return self._cell(name).is_set

    def set(self, name: str, value: Any) -> None:
        self._cell(name).set(value)

    def commit(self, stage: str) -> int:
        """Mark `stage` committed; it must be the next stage in order."""
        if stage != self.next_stage:
            raise InvariantViolation(f"Cannot commit '{stage}'; next stage is '{self.next_stage}'")
        self._step_index += 1
        return self._step_index

    def rewind(self, index: int) -> None:
        """Move step_index back on explicit user retry; fields already set stay set."""
        if not 0 <= index <= self._step_index:
            raise InvariantViolation(f"Cannot rewind to {index} from {self._step_index}")
        self._step_index = index

    def clear(self, *names: str) -> None:
        """Explicitly empty cells so their stages can run again; rewinds step_index to match."""
        earliest = self._step_index
        for name in names:
            self._cell(name).clear()
            earliest = min(earliest, _PRODUCED_BY[name] - 1)
        # every cell produced at or after the earliest rewound stage must be redone too
        for name, stage_no in _PRODUCED_BY.items():
            if stage_no > earliest:
                self._cells[name].clear()
        self._step_index = earliest

    def wipe_secrets(self) -> None:
        """Drop key material and retire the context; any further access raises."""
        for name in SECRET_FIELDS:
            self._cells[name].clear()
        self.discarded = True

    def snapshot(self) -> dict[str, Any]:
        """Non-secret view of the committed state, for logs and status output."""
        out: dict[str, Any] = {"step_index": self._step_index}
        for name, cell in self._cells.items():
            if name in SECRET_FIELDS or name == "ciphertext":
                out[name] = "<set>" if cell.is_set else None
            else:
                out[name] = cell.get() if cell.is_set else None
        return out
