from __future__ import annotations

import os

import httpx

MAX_CONCURRENCY_ENV = "TILE_MAX_CONCURRENCY"
REQUEST_TIMEOUT_ENV = "TILE_REQUEST_TIMEOUT"
MAX_TILE_COUNT_ENV = "TILE_MAX_COUNT"
DEFAULT_ZOOM_ENV = "TILE_DEFAULT_ZOOM"

PROVIDER_BASE_URL_ENV = "TMS_BASE_URL"
PROVIDER_EXTENSION_ENV = "TMS_EXTENSION"
PROVIDER_API_KEY_ENV = "TMS_API_KEY"
PROVIDER_ATTRIBUTION_ENV = "TMS_ATTRIBUTION"
PROVIDER_TILE_SIZE_ENV = "TMS_TILE_SIZE"
PROVIDER_SCHEME_ENV = "TMS_SCHEME"

DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_TILE_COUNT = 100
DEFAULT_ZOOM = 18
MAX_ZOOM = 22


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return max(minimum, value)


def max_concurrency() -> int:
    return _env_int(MAX_CONCURRENCY_ENV, DEFAULT_MAX_CONCURRENCY, minimum=1)


def max_tile_count() -> int:
    return _env_int(MAX_TILE_COUNT_ENV, DEFAULT_MAX_TILE_COUNT, minimum=1)


def default_zoom() -> int:
    zoom = _env_int(DEFAULT_ZOOM_ENV, DEFAULT_ZOOM)
    return min(zoom, MAX_ZOOM)


def request_timeout() -> httpx.Timeout:
    raw_value = os.getenv(REQUEST_TIMEOUT_ENV, "").strip()
    seconds = DEFAULT_REQUEST_TIMEOUT
    if raw_value:
        try:
            seconds = float(raw_value)
        except ValueError:
            seconds = DEFAULT_REQUEST_TIMEOUT
    if seconds <= 0:
        seconds = DEFAULT_REQUEST_TIMEOUT
    return httpx.Timeout(seconds)


def provider_settings_from_env() -> dict:
    """Collect provider keyword arguments from the ``TMS_*`` variables.

    Only variables that are set are returned so ``ProviderConfig`` keeps its
    own defaults for the rest.
    """

    settings: dict = {}
    base_url = os.getenv(PROVIDER_BASE_URL_ENV, "").strip()
    if base_url:
        settings["base_url"] = base_url

    for key, env_name in (
        ("extension", PROVIDER_EXTENSION_ENV),
        ("api_key", PROVIDER_API_KEY_ENV),
        ("attribution", PROVIDER_ATTRIBUTION_ENV),
        ("scheme", PROVIDER_SCHEME_ENV),
    ):
        value = os.getenv(env_name, "").strip()
        if value:
            settings[key] = value

    tile_size = _env_int(PROVIDER_TILE_SIZE_ENV, 0)
    if tile_size > 0:
        settings["tile_size"] = tile_size

    return settings
