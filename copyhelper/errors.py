"""
Exception hierarchy for the indexing and retrieval core.

Degenerate inputs (empty text, blank images, zero-norm vectors) are not
errors and never raise; they produce empty or zero results instead.
"""


class CopyHelperError(Exception):
    """Base class for all copyhelper failures."""


class ResourceError(CopyHelperError):
    """A required model, vocabulary or data file is missing or unreadable."""

    def __init__(self, path, reason: str = "not found"):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Required resource {self.path}: {reason}")


class InferenceError(CopyHelperError):
    """An encoder or OCR call failed. Always carries the original cause."""


class DocumentError(CopyHelperError):
    """A document or embedded image could not be parsed."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(f"{self.path}: {message}")


class IndexStoreError(CopyHelperError):
    """The persisted index exists but cannot be read back."""
