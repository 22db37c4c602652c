"""Error taxonomy for tree editing, publishing, and key release"""


class BlockpubError(Exception):
    """Base class for all errors raised by blockpub."""


# --- document tree ---

class TreeError(BlockpubError, ValueError):
    """A structural error local to a tree-editing operation."""


class NodeNotFound(TreeError):
    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' not found")
        self.node_id = node_id


class DuplicateId(TreeError):
    def __init__(self, node_id: str):
        super().__init__(f"Node id '{node_id}' already exists in the document")
        self.node_id = node_id


class UnsupportedNesting(TreeError):
    def __init__(self, parent_type: str, child_type: str):
        super().__init__(f"A '{parent_type}' block cannot contain a '{child_type}' block")
        self.parent_type = parent_type
        self.child_type = child_type


class UnknownBlockType(TreeError):
    def __init__(self, label: str):
        super().__init__(f"Unknown block type: '{label}'")
        self.label = label


class InvalidProps(TreeError):
    """Props do not match the schema of the block type."""


# --- publish pipeline ---

class PublishError(BlockpubError):
    """A typed failure of one publish stage.

    `stage` names the stage that failed (None for failures raised before any
    stage ran) and `retryable` tells the caller whether resubmitting without
    changing input can succeed.
    """
    retryable = False

    def __init__(self, message: str, stage: str = None):
        super().__init__(message)
        self.stage = stage


class EncryptionFailed(PublishError):
    retryable = True


class StorageUploadFailed(PublishError):
    retryable = True


class KeyEncryptionFailed(PublishError):
    retryable = True


class InvalidImageType(PublishError):
    pass


class TransactionRejected(PublishError):
    pass


class ConfirmationTimeout(PublishError):
    pass


class UnexpectedFailure(PublishError):
    pass


class InvariantViolation(PublishError):
    pass


class PublishInProgress(PublishError):
    pass


class PublishAbandoned(PublishError):
    retryable = True


# --- key release ---

class AccessDenied(BlockpubError):
    """The access policy refused to release a key."""


class RetrievalFailed(BlockpubError):
    """A published block could not be fetched or decrypted."""
