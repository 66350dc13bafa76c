from __future__ import annotations


class DocStackerError(RuntimeError):
    """Base class for every error raised by the signing workflow."""


class ValidationError(DocStackerError):
    """Raised when user-supplied input blocks a workflow step.

    Always recoverable: the message is meant to be shown to the user as-is.
    """


class IncompleteSignature(ValidationError):
    """Raised when a signature field has no captured signature at finalize time."""


class UnknownField(DocStackerError, LookupError):
    """Raised when an operation references a field id that is not in the session."""

    def __init__(self, field_id: str) -> None:
        super().__init__(f"Unknown field {field_id!r}.")
        self.field_id = field_id


class InvalidSigner(DocStackerError, LookupError):
    """Raised when a field is assigned to a signer missing from the roster."""

    def __init__(self, signer_id: str) -> None:
        super().__init__(f"Signer {signer_id!r} is not in the roster.")
        self.signer_id = signer_id


class CollaboratorFailure(DocStackerError):
    """Raised when a call to the document backend fails."""
