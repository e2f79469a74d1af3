"""
Error types raised by the Canvas Studio engines.

Every error a user can trigger while editing derives from StudioError so the
editor session can catch them at one boundary and show a dismissible message.
Bad arguments from calling code still raise ValueError / TypeError / KeyError.
"""


class StudioError(Exception):
    """Base class for recoverable editing errors."""

    user_message = "Something went wrong"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.user_message)


class DecodeError(StudioError):
    """A source or overlay image could not be decoded."""

    user_message = "Could not load image"


class ApplyFailed(StudioError):
    """Rasterization raised or produced empty output."""

    user_message = "Apply failed"


class StorageError(StudioError):
    """Upload, fetch or delete against asset storage failed."""

    user_message = "Storage request failed"


class InvalidRegion(StudioError):
    """A crop or mask region has zero area."""

    user_message = "Selected region is empty"


class ConcurrentApplyRejected(StudioError):
    """An apply is already in flight for the same asset."""

    user_message = "Another apply is still running for this asset"


class OriginalVersionProtected(StudioError, ValueError):
    """The synthetic Original (version 0) can never be deleted."""

    user_message = "The original cannot be deleted"


class UnsupportedMediaType(StudioError, ValueError):
    """An uploaded file is neither an image nor a whitelisted video."""

    user_message = "Unsupported file type"
