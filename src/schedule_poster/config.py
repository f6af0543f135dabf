"""Runtime settings from the environment (and an optional .env file)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from schedule_poster.exceptions import ValidationError

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent


def asset_dir_candidates() -> list[Path]:
    """Places an ``Assets`` folder is looked for, most specific first."""
    cwd = Path.cwd()
    return [
        PACKAGE_DIR / "Assets",
        cwd / "Assets",
        cwd / "schedule-poster" / "Assets",
    ]


def find_assets_dir(candidates: Optional[list[Path]] = None) -> Optional[Path]:
    for path in candidates if candidates is not None else asset_dir_candidates():
        if path.is_dir():
            return path
    return None


def _env_int(env: dict, name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from None


def is_debug(env: Optional[dict] = None) -> bool:
    """Check if DEBUG is enabled via environment / .env."""
    env = os.environ if env is None else env
    return env.get("DEBUG", "").lower() in ("1", "true")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    assets_dir: Optional[Path] = None
    canvas_width: int = 1080
    canvas_height: int = 1350
    default_theme: str = "samewave"
    settle_ms: int = 400
    content_timeout_ms: int = 15000
    chromium_args: tuple[str, ...] = field(
        default=("--no-sandbox", "--disable-setuid-sandbox"),
    )


def load_settings(env: Optional[dict] = None) -> Settings:
    """Build Settings from ``env`` (defaults to os.environ after load_dotenv)."""
    if env is None:
        from dotenv import load_dotenv

        load_dotenv()
        env = dict(os.environ)

    assets_dir = None
    if env.get("ASSETS_DIR"):
        assets_dir = Path(env["ASSETS_DIR"]).expanduser()
        if not assets_dir.is_dir():
            logger.warning("ASSETS_DIR %s is not a directory", assets_dir)
            assets_dir = None
    else:
        assets_dir = find_assets_dir()

    chromium_args = Settings.chromium_args
    if env.get("CHROMIUM_ARGS") is not None:
        chromium_args = tuple(env["CHROMIUM_ARGS"].split())

    settings = Settings(
        host=env.get("HOST") or "0.0.0.0",
        port=_env_int(env, "PORT", 3000),
        debug=is_debug(env),
        assets_dir=assets_dir,
        canvas_width=_env_int(env, "CANVAS_WIDTH", 1080),
        canvas_height=_env_int(env, "CANVAS_HEIGHT", 1350),
        default_theme=(env.get("POSTER_THEME") or "samewave").lower(),
        settle_ms=_env_int(env, "RENDER_SETTLE_MS", 400),
        content_timeout_ms=_env_int(env, "RENDER_TIMEOUT_MS", 15000),
        chromium_args=chromium_args,
    )
    if settings.content_timeout_ms <= 0:
        raise ValidationError("RENDER_TIMEOUT_MS must be > 0")
    return settings
