"""Process entry point — HTTP server or one-shot render to PNG files."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from schedule_poster.config import load_settings
from schedule_poster.exceptions import PosterError
from schedule_poster.renderer.html_renderer import PosterOptions
from schedule_poster.renderer.themes import get_theme, theme_names
from schedule_poster.schedule.models import CanvasSize
from schedule_poster.schedule.normalize import normalize_payload

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schedule-poster",
        description="Render weekly schedules as paginated PNG posters.",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP render service (default)")
    serve.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Port (default: PORT or 3000)")

    render = sub.add_parser("render", help="Render a JSON payload file to PNGs")
    render.add_argument("payload", type=Path, help="Render request JSON file")
    render.add_argument("--out", type=Path, default=Path("output"), help="Output directory")
    render.add_argument("--theme", choices=theme_names(), help="Override payload theme")
    return parser


def _serve(args: argparse.Namespace, settings) -> int:
    import uvicorn

    from schedule_poster.service.app import create_app

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


def _render(args: argparse.Namespace, settings) -> int:
    from schedule_poster.service.render_service import get_render_service, shutdown_render_service

    data = json.loads(args.payload.read_text(encoding="utf-8"))
    if args.theme:
        data["theme"] = args.theme
    theme = get_theme(data.get("theme"), default=settings.default_theme).with_overrides(data)
    size = CanvasSize.from_payload(
        data.get("size"), CanvasSize(settings.canvas_width, settings.canvas_height),
    )
    options = PosterOptions.from_payload(data, assets_dir=settings.assets_dir)

    service = get_render_service(settings)
    try:
        images = service.render_schedule(normalize_payload(data), theme, size, options)
    finally:
        shutdown_render_service()

    args.out.mkdir(parents=True, exist_ok=True)
    stem = args.payload.stem
    for image in images:
        path = args.out / f"{stem}_{image.page_index:02d}of{image.page_total:02d}.png"
        path.write_bytes(image.image_bytes)
        logger.info("Saved %s (%dx%d)", path, image.width, image.height)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the schedule poster service or a one-shot render."""
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    _configure_logging(settings.debug)

    try:
        if args.command == "render":
            return _render(args, settings)
        if args.command in (None, "serve"):
            if args.command is None:
                args.host = args.port = None
            return _serve(args, settings)
    except PosterError as exc:
        logger.error("%s", exc)
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
