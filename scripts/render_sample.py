"""
Render the sample week in every built-in theme.

Usage:
    source venv/bin/activate
    python scripts/render_sample.py

Produces PNG posters (via HTML/CSS + Playwright) in output/<theme>/.
Also writes the intermediate HTML next to each PNG for visual debugging.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from schedule_poster.config import load_settings
from schedule_poster.layout import paginate_or_blank
from schedule_poster.renderer import PosterOptions, get_theme, render_markup, theme_names
from schedule_poster.schedule import CanvasSize, normalize_payload
from schedule_poster.service import get_render_service, shutdown_render_service

ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = ROOT / "output"
SAMPLE = Path(__file__).resolve().parent / "sample_week.json"


def main():
    settings = load_settings()
    data = json.loads(SAMPLE.read_text(encoding="utf-8"))
    groups = normalize_payload(data)
    size = CanvasSize(settings.canvas_width, settings.canvas_height)
    options = PosterOptions.from_payload(data, assets_dir=settings.assets_dir)

    print("=" * 60)
    print(f"Rendering sample week: {len(groups)} day(s), "
          f"{sum(len(g.entries) for g in groups)} entries")
    print("=" * 60)

    service = get_render_service(settings)
    try:
        for n, name in enumerate(theme_names(), start=1):
            theme = get_theme(name)
            out_dir = OUTPUT_DIR / name
            out_dir.mkdir(parents=True, exist_ok=True)

            pages = paginate_or_blank(groups, theme.layout)
            print(f"\n{n}. {name}: {len(pages)} page(s) "
                  f"(max {theme.layout.max_lines_per_page} lines/page)")
            for page in pages:
                html = render_markup(page, theme, size, options)
                (out_dir / f"page_{page.index:02d}.html").write_text(html, encoding="utf-8")

            for image in service.render_pages(pages, theme, size, options):
                path = out_dir / f"page_{image.page_index:02d}of{image.page_total:02d}.png"
                path.write_bytes(image.image_bytes)
                print(f"   Saved: {path} ({image.width}x{image.height})")
    finally:
        shutdown_render_service()

    print("\n" + "=" * 60)
    print(f"Done! Files in: {OUTPUT_DIR}")
    print("=" * 60)


if __name__ == "__main__":
    main()
