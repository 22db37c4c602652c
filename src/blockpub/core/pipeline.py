"""Publish pipeline: encrypt, store, seal the key, build metadata, mint, confirm"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from blockpub.collab.interfaces import (
    USER_ADDRESS, AccessPolicy, Chain, ContentStore, EncryptionBackend, Receipt,
)
from blockpub.config import Settings
from blockpub.core.context import STAGES, PublishContext
from blockpub.core.errors import (
    ConfirmationTimeout, EncryptionFailed, InvalidImageType, InvariantViolation,
    KeyEncryptionFailed, PublishAbandoned, PublishError, PublishInProgress,
    StorageUploadFailed, TransactionRejected, UnexpectedFailure,
)
from blockpub.core.metadata import build_metadata
from blockpub.core.models import PublishRequest
from blockpub.core.result import Err, is_result
from blockpub.core.steps import advance, initial_steps
from blockpub.core.tree import DocumentTree
from blockpub.core.utils.cid import cid_to_bytes32, ipfs_uri
from blockpub.core.utils.slug import image_filename


logger = logging.getLogger(__name__)

DOCUMENT_FILENAME = "block"
METADATA_FILENAME = "metadata.json"

PROGRESS_MESSAGES = {
    "encrypt_document":         "Encrypting block...",
    "store_document":           "Uploading block...",
    "derive_access_conditions": "Deriving access conditions...",
    "encrypt_key":              "Securing the block key...",
    "store_image":              "Uploading cover image...",
    "build_metadata":           "Building metadata...",
    "store_metadata":           "Uploading metadata...",
    "submit_transaction":       "Minting your BlockNFT",
    "await_confirmation":       "Confirming the transaction",
}

# Wizard step completed when a stage commits (Metadata, then Mint).
STEP_FOR_STAGE = {"build_metadata": 1, "await_confirmation": 2}

# First stage that consumes each request field; the field is frozen once that stage commits.
REQUEST_FIELD_STAGE = {"name": 5, "image": 5, "description": 6, "tags": 6}


class Publisher:
    """Runs one publish attempt over a PublishContext.

    Stages execute strictly in order. A stage either sets exactly its own
    write-once cells and commits, or raises a PublishError leaving
    `context.step_index` at the last committed stage. Calling `run()` again
    resumes at the first uncommitted stage, so collaborators behind committed
    stages are never invoked twice.
    """

    def __init__(
        self,
        request: PublishRequest,
        context: PublishContext,
        encryption: EncryptionBackend,
        access: AccessPolicy,
        storage: ContentStore,
        chain: Chain,
        settings: Settings = None,
        on_progress: Callable[[str], Any] = None,
        ):
        self.request = request
        self.context = context
        self.encryption = encryption
        self.access = access
        self.storage = storage
        self.chain = chain
        self.settings = settings or Settings()
        self.on_progress = on_progress
        self.steps = initial_steps()
        self.is_minting = False
        self.progress = "Initializing..."
        self.last_error: Optional[PublishError] = None
        self._abandon_requested = False
        self._stages: dict[str, Callable[[], Awaitable[None]]] = {
            "encrypt_document":         self._encrypt_document,
            "store_document":           self._store_document,
            "derive_access_conditions": self._derive_access_conditions,
            "encrypt_key":              self._encrypt_key,
            "store_image":              self._store_image,
            "build_metadata":           self._build_metadata,
            "store_metadata":           self._store_metadata,
            "submit_transaction":       self._submit_transaction,
            "await_confirmation":       self._await_confirmation,
        }

    @classmethod
    def for_tree(cls, tree: DocumentTree, request: PublishRequest, **kwargs) -> "Publisher":
        """Capture the tree once (validated, serialized) and build a publisher over a fresh context."""
        tree.validate()
        return cls(request, PublishContext(tree.serialize()), **kwargs)

    @property
    def status_message(self) -> str:
        """The last error's message in place of progress, else the latest progress message."""
        return str(self.last_error) if self.last_error else self.progress

    def _report(self, message: str) -> None:
        self.progress = message
        if self.on_progress:
            self.on_progress(message)

    # --- control ---

    async def run(self) -> Receipt:
        """Run (or resume) the pipeline to a confirmed transaction receipt."""
        if self.is_minting:
            raise PublishInProgress("A publish attempt is already running")
        if self.context.discarded:
            raise InvariantViolation("Publish context was discarded; start a new attempt")

        self.is_minting = True
        self.last_error = None
        self._abandon_requested = False
        stage = None
        try:
            for index, (stage, fields) in enumerate(STAGES, start=1):
                if index <= self.context.step_index:
                    continue
                if self._abandon_requested:
                    raise PublishAbandoned(f"Publish abandoned before '{stage}'", stage)
                if fields and all(self.context.is_set(f) for f in fields):
                    logger.info("Reusing committed output of %s", stage)
                else:
                    partial = [f for f in fields if self.context.is_set(f)]
                    if partial:
                        logger.info("Clearing partial output of %s: %s", stage, ", ".join(partial))
                        self.context.clear(*partial)
                    self._report(PROGRESS_MESSAGES[stage])
                    logger.info("Stage %d/%d %s started", index, len(STAGES), stage)
                    await self._stages[stage]()
                self.context.commit(stage)
                if stage in STEP_FOR_STAGE:
                    self.steps = advance(self.steps, STEP_FOR_STAGE[stage])
        except PublishError as e:
            if e.stage is None:
                e.stage = stage
            self._fail(e)
            raise
        except Exception as e:
            err = UnexpectedFailure(f"Unexpected failure in '{stage}': {e}", stage)
            self._fail(err)
            raise err from e
        finally:
            self.is_minting = False

        receipt = self.context["receipt"]
        self._report(f"Transaction Confirmed: {receipt.tx_hash}")
        logger.info("Published %s in tx %s", self.context["metadata_uri"], receipt.tx_hash)
        return receipt

    def _fail(self, error: PublishError) -> None:
        self.last_error = error
        logger.warning(
            "Publish failed at %s (%s, retryable=%s): %s; committed stages: %d",
            error.stage, type(error).__name__, error.retryable, error, self.context.step_index,
        )
        logger.debug("Context after failure: %s", self.context.snapshot())

    def abandon(self) -> None:
        """Request a stop at the next stage boundary; an issued collaborator call is not cancelled."""
        self._abandon_requested = True

    def discard(self) -> None:
        """Retire this attempt and drop its key material."""
        if self.is_minting:
            raise PublishInProgress("Cannot discard a running publish attempt")
        self.context.wipe_secrets()

    def update_request(self, **fields: Any) -> PublishRequest:
        """Correct form input before resubmitting; fields already consumed by committed stages are frozen."""
        for name in fields:
            stage_no = REQUEST_FIELD_STAGE.get(name)
            if stage_no is None:
                raise InvariantViolation(f"Unknown request field '{name}'")
            if self.context.step_index >= stage_no:
                raise InvariantViolation(
                    f"'{name}' was already used by '{STAGES[stage_no - 1][0]}' and cannot change"
                )
        self.request = PublishRequest.model_validate({**self.request.model_dump(), **fields})
        return self.request

    # --- collaborator calls ---

    async def _call(
        self,
        failure: type[PublishError],
        message: str,
        awaitable: Awaitable,
        allow_empty: bool = False,
        ) -> Any:
        """Await a collaborator call, check the error variant first, then read the value."""
        try:
            result = await awaitable
        except Exception as e:
            raise UnexpectedFailure(f"{message}: collaborator raised {type(e).__name__}: {e}") from e
        if not is_result(result):
            raise UnexpectedFailure(f"{message}: collaborator returned {type(result).__name__}, not a Result")
        if isinstance(result, Err):
            raise failure(f"{message}: {result.message}") from result.error
        if result.value is None and not allow_empty:
            raise failure(f"{message}: empty response")
        return result.value

    # --- stages ---

    async def _encrypt_document(self) -> None:
        payload = await self._call(
            EncryptionFailed, "Failed to encrypt block", self.encryption.encrypt(self.context.serialized_document),
        )
        for name in ("ciphertext", "symmetric_key"):
            value = getattr(payload, name, None)
            if not isinstance(value, (bytes, bytearray)) or not value:
                raise EncryptionFailed(f"Failed to encrypt block: response has no {name}")
        self.context.set("ciphertext", payload.ciphertext)
        self.context.set("symmetric_key", payload.symmetric_key)

    async def _store_document(self) -> None:
        cid = await self._call(
            StorageUploadFailed, "Failed to upload block",
            self.storage.put(self.context["ciphertext"], DOCUMENT_FILENAME),
        )
        self.context.set("document_cid", cid)

    async def _derive_access_conditions(self) -> None:
        try:
            cid_hash = cid_to_bytes32(self.context["document_cid"])
        except ValueError as e:
            raise InvariantViolation(f"Stored document address is malformed: {e}") from e
        try:
            clause = self.access.build_condition(
                self.settings.contract_name, self.settings.predicate, [cid_hash, USER_ADDRESS],
            )
        except Exception as e:
            raise UnexpectedFailure(f"Failed to build access condition: {e}") from e
        self.context.set("access_conditions", [clause])

    async def _encrypt_key(self) -> None:
        sealed = await self._call(
            KeyEncryptionFailed, "Failed to encrypt block key",
            self.access.encrypt_key_under_conditions(
                self.context["symmetric_key"], self.context["access_conditions"],
            ),
        )
        self.context.set("encrypted_key", sealed)

    async def _store_image(self) -> None:
        image = self.request.image
        if image is None:
            logger.info("No cover image supplied; skipping upload")
            return
        if not image.content_type.startswith("image/"):
            raise InvalidImageType("Uploaded file is not an image")
        if len(image.data) > self.settings.max_image_bytes:
            raise InvalidImageType(
                f"Cover image is {len(image.data)} bytes; the limit is {self.settings.max_image_bytes}"
            )
        filename = image_filename(self.request.name, image.content_type)
        cid = await self._call(
            StorageUploadFailed, "Failed to upload image", self.storage.put(image.data, filename),
        )
        uri = ipfs_uri(cid, filename)
        self.context.set("image_cid", cid)
        self.context.set("image_uri", uri)

    async def _build_metadata(self) -> None:
        self.context.set("metadata", build_metadata(
            name=self.request.name,
            description=self.request.description,
            document_cid=self.context["document_cid"],
            encrypted_key=self.context["encrypted_key"],
            conditions=self.context["access_conditions"],
            image_uri=self.context.get("image_uri"),
            tags=self.request.tags,
        ))

    async def _store_metadata(self) -> None:
        cid = await self._call(
            StorageUploadFailed, "Failed to upload metadata",
            self.storage.put(self.context["metadata"].to_json_bytes(), METADATA_FILENAME),
        )
        uri = ipfs_uri(cid, METADATA_FILENAME)
        self.context.set("metadata_cid", cid)
        self.context.set("metadata_uri", uri)

    async def _submit_transaction(self) -> None:
        content_hash = cid_to_bytes32(self.context["document_cid"])
        existing = await self._call(
            UnexpectedFailure, "Failed to query transaction status",
            self.chain.find_transaction(content_hash), allow_empty=True,
        )
        if existing is not None:
            logger.info("Found transaction %s for this block already on chain; not resubmitting", existing.tx_hash)
            self.context.set("transaction_handle", existing)
            return

        try:
            price = await self.chain.get_price()
        except Exception as e:
            raise UnexpectedFailure(f"Failed to fetch publish price: {e}") from e
        handle = await self._call(
            TransactionRejected, "Transaction rejected",
            self.chain.submit(content_hash, self.context["metadata_uri"], price),
        )
        logger.info("Submitted tx %s paying %d wei", handle.tx_hash, price)
        self.context.set("transaction_handle", handle)

    async def _await_confirmation(self) -> None:
        handle = self.context["transaction_handle"]
        timeout = self.settings.confirmation_timeout
        try:
            receipt = await asyncio.wait_for(
                self._call(TransactionRejected, "Transaction failed", self.chain.await_confirmation(handle)),
                timeout,
            )
        except asyncio.TimeoutError:
            raise ConfirmationTimeout(
                f"Transaction {handle.tx_hash} was not confirmed within {timeout:g}s; "
                f"its on-chain status is checked before any retry"
            ) from None
        self.context.set("receipt", receipt)
