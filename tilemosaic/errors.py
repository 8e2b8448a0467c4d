from __future__ import annotations

from enum import Enum
from typing import Dict


class ErrorType(str, Enum):
    """Stable symbolic kinds for failures surfaced by the tile pipeline."""

    MAXIMUM_TILE_COUNT_EXCEEDED = "MaximumTileCountExceeded"
    UNKNOWN_TASK = "UnknownTask"
    MISSING_INPUT_FIELD = "MissingInputField"
    IMAGE_LOAD_FAILED = "ImageLoadFailed"


ERROR_CODES: Dict[ErrorType, int] = {
    ErrorType.MAXIMUM_TILE_COUNT_EXCEEDED: 1001,
    ErrorType.UNKNOWN_TASK: 1002,
    ErrorType.MISSING_INPUT_FIELD: 1003,
    ErrorType.IMAGE_LOAD_FAILED: 1004,
}


class TileMosaicError(Exception):
    """Structured failure carrying an ``ErrorType`` and its numeric code."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str | None = None,
        *,
        tile_count: int | None = None,
    ) -> None:
        error_type = ErrorType(error_type)
        super().__init__(message or error_type.value)
        self.type = error_type
        self.code = ERROR_CODES[error_type]
        # Number of tiles the failing operation covered, when known.
        self.tile_count = tile_count

    @property
    def message(self) -> str:
        return str(self)

    def to_payload(self) -> Dict[str, object]:
        return {"error": self.type.value, "code": self.code, "detail": self.message}
