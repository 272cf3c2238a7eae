"""Exceptions raised while validating input and rendering generated modules."""

from __future__ import annotations


class GenstructError(Exception):
    """Base class for all genstruct errors."""


class NotASequenceError(GenstructError):
    """Raised when a dataset is not a list or tuple."""

    def __init__(self, kind: str, dataset: str = "data") -> None:
        self.kind = kind
        self.dataset = dataset
        super().__init__(f"{dataset} must be a list or tuple, got {kind}")


class EmptySequenceError(GenstructError):
    """Raised when a dataset has no elements to analyze."""

    def __init__(self, dataset: str = "data") -> None:
        self.dataset = dataset
        super().__init__(f"{dataset} must contain at least one element")


class UnsupportedElementKindError(GenstructError):
    """Raised when dataset elements are not dataclass instances."""

    def __init__(self, kind: str, dataset: str = "data") -> None:
        self.kind = kind
        self.dataset = dataset
        super().__init__(f"{dataset} elements must be dataclass instances, got {kind}")


class MixedElementKindError(UnsupportedElementKindError):
    """Raised when dataset elements do not share a single record kind."""

    def __init__(self, kind: str, expected: str, dataset: str = "data") -> None:
        self.expected = expected
        GenstructError.__init__(
            self, f"{dataset} elements must all be {expected}, got {kind}"
        )
        self.kind = kind
        self.dataset = dataset


class RenderError(GenstructError):
    """Raised when the generated source is not valid Python."""

    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        super().__init__(message)
