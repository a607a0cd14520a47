import sys
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from poster_renderer.renderer import PosterConfig  # noqa: E402
from storage.file_storage import AssetStorage  # noqa: E402

BG_COLOR = (20, 40, 160, 255)
FRAME_COLOR = (200, 200, 200, 255)
CHARACTER_COLOR = (220, 30, 30, 255)

# Frame geometry used by the template fixtures (270x480 poster)
CHARACTER_WINDOW = (20, 40, 250, 300)
LOWER_WINDOW = (20, 400, 250, 450)


def make_frame(size=(270, 480)) -> Image.Image:
    frame = Image.new("RGBA", size, FRAME_COLOR)
    draw = ImageDraw.Draw(frame)
    draw.rectangle((CHARACTER_WINDOW[0], CHARACTER_WINDOW[1], CHARACTER_WINDOW[2] - 1, CHARACTER_WINDOW[3] - 1), fill=(0, 0, 0, 0))
    draw.rectangle((LOWER_WINDOW[0], LOWER_WINDOW[1], LOWER_WINDOW[2] - 1, LOWER_WINDOW[3] - 1), fill=(0, 0, 0, 0))
    return frame


def make_character(size=(100, 150), color=CHARACTER_COLOR) -> Image.Image:
    return Image.new("RGBA", size, color)


def close_to(pixel, expected, tol=3) -> bool:
    return all(abs(a - b) <= tol for a, b in zip(pixel, expected))


@pytest.fixture
def asset_root(tmp_path) -> Path:
    root = tmp_path / "assets"
    root.mkdir()
    Image.new("RGBA", (270, 480), BG_COLOR).save(root / "background.png")
    make_frame().save(root / "layer.png")
    return root


@pytest.fixture
def asset_storage(asset_root) -> AssetStorage:
    return AssetStorage(asset_root)


@pytest.fixture
def poster_config(asset_root) -> PosterConfig:
    # Offset scaled down to the small test template
    return PosterConfig(asset_root=str(asset_root), character_top_offset=40, text_backend="raster")


@pytest.fixture
def character_png(tmp_path) -> bytes:
    path = tmp_path / "character.png"
    make_character().save(path)
    return path.read_bytes()
