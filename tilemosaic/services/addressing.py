from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ..errors import ErrorType, TileMosaicError
from .grid import TileCoordinate

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "png"
DEFAULT_ATTRIBUTION = "TMS Provider"
DEFAULT_TILE_SIZE = 256
TEMPLATE_TOKENS = ("{x}", "{y}", "{z}")


class TileScheme(str, Enum):
    """Y-axis numbering conventions understood by the addresser.

    ``WEB_MERCATOR_XYZ`` puts the origin at the top-left of the grid with y
    growing downward; ``TMS`` puts it at the bottom-left with y growing upward.
    """

    WEB_MERCATOR_XYZ = "WebMercator"
    TMS = "TMS"

    @classmethod
    def _missing_(cls, value: object) -> TileScheme | None:
        if isinstance(value, str):
            token = value.strip().lower()
            if token in {"webmercator", "webmercatorxyz", "xyz", "web_mercator_xyz"}:
                return cls.WEB_MERCATOR_XYZ
            if token == "tms":
                return cls.TMS
        return None


@dataclass(frozen=True)
class ProviderConfig:
    """Read-only description of a remote tile service."""

    base_url: str
    extension: str = DEFAULT_EXTENSION
    api_key: str | None = None
    attribution: str = DEFAULT_ATTRIBUTION
    tile_size: int = DEFAULT_TILE_SIZE
    headers: Mapping[str, str] | None = field(default=None, compare=False)
    scheme: TileScheme = TileScheme.WEB_MERCATOR_XYZ

    def __post_init__(self) -> None:
        base_url = (self.base_url or "").strip() if isinstance(self.base_url, str) else ""
        if not base_url:
            raise TileMosaicError(
                ErrorType.MISSING_INPUT_FIELD, "A tile provider requires a base URL or URL template."
            )
        object.__setattr__(self, "base_url", base_url)
        object.__setattr__(self, "extension", (self.extension or DEFAULT_EXTENSION).lstrip("."))
        object.__setattr__(self, "api_key", self.api_key or None)
        object.__setattr__(self, "attribution", self.attribution or DEFAULT_ATTRIBUTION)

        tile_size = self.tile_size if self.tile_size is not None else DEFAULT_TILE_SIZE
        if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size <= 0:
            raise ValueError(f"Tile size must be a positive integer, got {self.tile_size!r}.")
        object.__setattr__(self, "tile_size", tile_size)

        try:
            scheme = TileScheme(self.scheme or TileScheme.WEB_MERCATOR_XYZ)
        except ValueError as exc:
            raise ValueError(f"Unsupported tile scheme: {self.scheme!r}") from exc
        object.__setattr__(self, "scheme", scheme)

        if self.headers is not None:
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def is_template(self) -> bool:
        return any(token in self.base_url for token in TEMPLATE_TOKENS)


def addressed_y(coord: TileCoordinate, scheme: TileScheme) -> int:
    """Convert an XYZ y into the numbering used by ``scheme``.

    Values are not clamped; a y outside ``[0, 2**z)`` produces a negative or
    out-of-range result that is passed through to the URL.
    """

    _, y, z = coord
    if scheme == TileScheme.TMS:
        return 2 ** z - 1 - y
    return y


def resolve_tile_url(coord: TileCoordinate, config: ProviderConfig) -> str:
    """Build the URL of ``coord`` for the provider described by ``config``.

    ``coord.y`` is always given in XYZ (top-left origin) numbering. Templates
    containing ``{x}``, ``{y}`` or ``{z}`` are substituted literally; any other
    base URL gets ``/{z}/{x}/{y}.{extension}`` appended. The API key, when
    configured, is appended as ``?apikey=`` without merging into an existing
    query string.
    """

    x, _, z = coord
    y = addressed_y(coord, config.scheme)

    if config.is_template:
        url = (
            config.base_url.replace("{z}", str(z))
            .replace("{x}", str(x))
            .replace("{y}", str(y))
        )
    else:
        url = f"{config.base_url}/{z}/{x}/{y}.{config.extension}"

    if config.api_key:
        url += f"?apikey={config.api_key}"

    return url
