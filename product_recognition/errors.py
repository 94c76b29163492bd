"""
Error taxonomy for the recognition pipeline.

Decoder and extractor failures are request-level problems: they reject a
single query and leave the loaded catalog untouched. Catalog failures
happen only at startup and are fatal.

`Outcome` wraps either a match (or no match) or one of the named failure
kinds, so request handlers can branch on `kind` instead of catching
exceptions.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class RecognitionError(Exception):
    """Base class for every error raised by this package."""

    kind = "recognition"


class FormatError(RecognitionError, ValueError):
    """Malformed or unsupported image payload."""

    kind = "format"


class EmptyImageError(RecognitionError, ValueError):
    """Image has no pixels."""

    kind = "empty_image"


class InvalidPayloadError(RecognitionError, ValueError):
    """Text-encoded payload could not be decoded to bytes."""

    kind = "invalid_payload"


class CatalogLoadError(RecognitionError, RuntimeError):
    """Manifest or reference asset could not be loaded."""

    kind = "catalog_load"


ERROR_KINDS = (
    FormatError.kind,
    EmptyImageError.kind,
    InvalidPayloadError.kind,
    CatalogLoadError.kind,
)


@dataclass(frozen=True)
class Outcome:
    """
    Tagged result of a recognition request.

    Exactly one of two shapes:
        - success: `error_kind` is None, `result` holds the match or None
          when nothing matched
        - failure: `error_kind` is one of ERROR_KINDS and `message`
          describes the problem
    """

    result: Optional[Any] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, result) -> "Outcome":
        return cls(result=result)

    @classmethod
    def failure(cls, error: RecognitionError) -> "Outcome":
        return cls(error_kind=error.kind, message=str(error))

    @property
    def is_ok(self) -> bool:
        return self.error_kind is None

    @property
    def matched(self) -> bool:
        return self.is_ok and self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_ok:
            payload = self.result.to_dict() if self.result is not None else None
            return {"ok": True, "result": payload}
        return {"ok": False, "error": self.error_kind, "message": self.message}
