"""Error kinds raised by the transform pipeline and its collaborators."""

from __future__ import annotations


class SketchLabError(RuntimeError):
    """Base class for recoverable pipeline errors."""


class DecodeFailure(SketchLabError):
    """The selected source could not be decoded into pixels."""

    def __init__(self, message: str, *, source_id: str | None = None) -> None:
        super().__init__(message)
        self.source_id = source_id


class InvalidRegion(SketchLabError, ValueError):
    """A crop rectangle lies outside the image or has no area."""


class SurfaceUnavailable(SketchLabError):
    """The shared processing surface cannot be used right now."""


class PersistenceFailure(SketchLabError):
    """The gallery collaborator rejected a save, delete or clear."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


__all__ = [
    "DecodeFailure",
    "InvalidRegion",
    "PersistenceFailure",
    "SketchLabError",
    "SurfaceUnavailable",
]
