"""
Failure taxonomy for poster rendering.

Only AssetMissingError and CompositionError ever reach callers; the text and
font errors are recovered inside the renderer.
"""
from typing import Optional


class PosterError(Exception):
    """Base class for all poster pipeline failures."""


class AssetMissingError(PosterError):
    """A background or frame asset could not be read."""

    def __init__(self, asset: str, path: Optional[str] = None):
        self.asset = asset
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"Poster asset '{asset}' is missing or unreadable{where}")


class TextBackendUnavailableError(PosterError):
    """A text rendering backend failed or could not initialize."""


class FontAssetMissingError(PosterError):
    """An optional font file is absent."""


class CompositionError(PosterError):
    """A resize, composite or encode step failed."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Failed to merge images ({stage}): {detail}")
