"""Render a superhero poster from a character image on disk.

Usage:
    python -m scripts.render_poster --character generated.png --name "Jane Doe" --designation "software engineer"

Run from backend/. Template assets are read from POSTER_ASSET_ROOT (or --asset-root);
the poster lands in <media-root>/final/final-<timestamp>.png unless --out is given.
Environment variables may also be set in backend/.env.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BACKEND_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(BACKEND_ROOT / ".env")

from domain.errors import PosterError  # noqa: E402
from poster_renderer.compositor import encode_png  # noqa: E402
from poster_renderer.renderer import PosterConfig, merge_images  # noqa: E402
from services.poster_service import generate_poster  # noqa: E402
from settings import Settings  # noqa: E402
from storage.file_storage import PosterStorage  # noqa: E402

logger = logging.getLogger("render_poster")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Composite a character image into the poster template.")
    parser.add_argument("--character", required=True, help="Path to the generated character image.")
    parser.add_argument("--name", default=None, help="Name shown in capitals on the banner.")
    parser.add_argument("--designation", default=None, help="Designation shown under the name.")
    parser.add_argument("--asset-root", default=None, help="Directory holding background.png, layer.png and fonts.")
    parser.add_argument("--media-root", default=None, help="Output media root (final/, generated/).")
    parser.add_argument("--out", default=None, help="Write the poster here instead of the media root.")
    parser.add_argument(
        "--text-backend",
        choices=["auto", "raster", "markup"],
        default=None,
        help="Text rendering backend (default from POSTER_TEXT_BACKEND).",
    )
    parser.add_argument("--timestamp", default=None, help="Timestamp used in output filenames.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)

    settings = Settings()
    config = PosterConfig.from_settings(settings)
    if args.asset_root:
        config = dataclasses.replace(config, asset_root=args.asset_root)
    if args.text_backend:
        config = dataclasses.replace(config, text_backend=args.text_backend)

    character_path = Path(args.character)
    try:
        character_bytes = character_path.read_bytes()
    except OSError as exc:
        logger.error("Could not read character image %s: %s", character_path, exc)
        return 2

    try:
        if args.out:
            out_path = Path(args.out)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            poster = merge_images(character_bytes, args.name, args.designation, config=config)
            out_path.write_bytes(encode_png(poster))
            logger.info("Wrote %s (%sx%s)", out_path, poster.width, poster.height)
            return 0

        storage = PosterStorage(args.media_root or settings.MEDIA_ROOT)
        result = generate_poster(
            character_bytes,
            args.name,
            args.designation,
            storage=storage,
            config=config,
            timestamp=args.timestamp or str(int(time.time() * 1000)),
        )
    except PosterError as exc:
        logger.error("Poster rendering failed: %s", exc)
        return 1

    logger.info("Wrote %s (%sx%s)", storage.get_absolute_path(result.final_path), result.width, result.height)
    if result.debug_dir:
        logger.info("  debug_dir: %s", result.debug_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
