from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from utils.errors import ConfigError

ALL_SYMBOL_FORMATS = (
    "ean_13",
    "ean_8",
    "upc_a",
    "upc_e",
    "code_128",
    "code_39",
    "code_93",
    "codabar",
    "itf",
)


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings, read once from the environment at startup.
    """

    api_url: str = "http://localhost:5000"
    api_token: Optional[str] = None
    api_timeout: float = 10.0

    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    scan_debounce: float = 2.0
    scan_fps: float = 10.0
    symbol_formats: tuple[str, ...] = ALL_SYMBOL_FORMATS

    toast_seconds: float = 3.0
    search_debounce: float = 0.45
    search_limit: int = 5
    currency: str = "₱"
    debug: bool = False


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _float(env: Mapping[str, str], name: str, default: float, minimum: float = 0.0) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number. Received: {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}. Received: {value}")
    return value


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer. Received: {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}. Received: {value}")
    return value


def _formats(env: Mapping[str, str]) -> tuple[str, ...]:
    raw = _get(env, "POS_SYMBOL_FORMATS")
    if raw is None:
        return ALL_SYMBOL_FORMATS
    names = tuple(n.strip().lower() for n in raw.split(",") if n.strip())
    unknown = [n for n in names if n not in ALL_SYMBOL_FORMATS]
    if unknown or not names:
        raise ConfigError(
            f"POS_SYMBOL_FORMATS has unknown formats: {', '.join(unknown) or raw!r}"
        )
    return names


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from env vars (os.environ by default). Raises ConfigError."""
    env = os.environ if env is None else env

    debounce = _float(env, "POS_SCAN_DEBOUNCE", 2.0)
    fps = _float(env, "POS_SCAN_FPS", 10.0, minimum=0.1)
    toast = _float(env, "POS_TOAST_SECONDS", 3.0, minimum=0.1)

    return Settings(
        api_url=(_get(env, "POS_API_URL") or "http://localhost:5000").rstrip("/"),
        api_token=_get(env, "POS_API_TOKEN"),
        api_timeout=_float(env, "POS_API_TIMEOUT", 10.0, minimum=0.1),
        camera_index=_int(env, "POS_CAMERA_INDEX", 0),
        camera_width=_int(env, "POS_CAMERA_WIDTH", 640, minimum=1),
        camera_height=_int(env, "POS_CAMERA_HEIGHT", 480, minimum=1),
        scan_debounce=debounce,
        scan_fps=fps,
        symbol_formats=_formats(env),
        toast_seconds=toast,
        search_debounce=_float(env, "POS_SEARCH_DEBOUNCE", 0.45),
        search_limit=_int(env, "POS_SEARCH_LIMIT", 5, minimum=1),
        currency=_get(env, "POS_CURRENCY") or "₱",
        debug=bool(_get(env, "DEBUG")),
    )
