"""
File storage abstraction.

AssetStorage reads the poster template (background, frame, fonts).
PosterStorage persists uploads, generated characters and final posters.
Both use the local filesystem.
"""
import logging
import uuid
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from domain.errors import AssetMissingError
from poster_renderer import defaults

logger = logging.getLogger(__name__)


class AssetStorage:
    """
    Read-only template assets.

    Files live directly under the asset root:
    - background.png  - poster background, drives the output size
    - layer.png  - decorative frame with a transparent character window
    - CalSans-SemiBold.ttf / Geist-Regular.ttf  - optional fonts
    """

    def __init__(
        self,
        asset_root: str | Path = defaults.ASSETS_DIR,
        background_file: str = defaults.BACKGROUND_FILE,
        frame_file: str = defaults.FRAME_FILE,
        name_font_file: str = defaults.NAME_FONT_FILE,
        designation_font_file: str = defaults.DESIGNATION_FONT_FILE,
    ):
        self.asset_root = Path(asset_root)
        self.background_file = background_file
        self.frame_file = frame_file
        self.name_font_file = name_font_file
        self.designation_font_file = designation_font_file

    @property
    def background_path(self) -> Path:
        return self.asset_root / self.background_file

    @property
    def frame_path(self) -> Path:
        return self.asset_root / self.frame_file

    @property
    def name_font_path(self) -> Path:
        return self.asset_root / self.name_font_file

    @property
    def designation_font_path(self) -> Path:
        return self.asset_root / self.designation_font_file

    def read_image(self, asset: str, path: Path) -> Image.Image:
        """Load ``path`` fully into memory as RGBA, or raise AssetMissingError."""
        try:
            with Image.open(path) as img:
                return img.convert("RGBA")
        except (OSError, UnidentifiedImageError) as exc:
            logger.error("[assets] failed to read %s from %s: %s", asset, path, exc)
            raise AssetMissingError(asset, str(path)) from exc

    def read_background(self) -> Image.Image:
        return self.read_image("background", self.background_path)

    def read_frame(self) -> Image.Image:
        return self.read_image("frame", self.frame_path)


class PosterStorage:
    """
    Local storage for poster outputs.

    Files are organized as:
    - media/uploads/  - user photos as uploaded
    - media/generated/  - AI-generated character images
    - media/final/  - flattened posters
    """

    def __init__(self, media_root: str | Path = "media"):
        self.media_root = Path(media_root)
        self.media_root.mkdir(parents=True, exist_ok=True)

    def _subdir(self, name: str) -> Path:
        path = self.media_root / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_uploads_dir(self) -> Path:
        return self._subdir("uploads")

    def get_generated_dir(self) -> Path:
        return self._subdir("generated")

    def get_final_dir(self) -> Path:
        return self._subdir("final")

    def get_debug_dir(self, stub: str) -> Path:
        return self._subdir(f"debug/{stub}")

    def _write(self, directory: Path, filename: str, data: bytes) -> str:
        file_path = directory / filename
        file_path.write_bytes(data)
        return file_path.relative_to(self.media_root).as_posix()

    def save_upload(self, data: bytes, filename: str, timestamp: Optional[str] = None) -> str:
        """
        Save an uploaded photo.

        Returns:
            Relative path to the saved file
        """
        ext = Path(filename).suffix.lower() or ".jpg"
        return self._write(self.get_uploads_dir(), f"upload-{timestamp or uuid.uuid4()}{ext}", data)

    def save_generated(self, data: bytes, timestamp: str) -> str:
        return self._write(self.get_generated_dir(), f"generated-{timestamp}.png", data)

    def save_final(self, data: bytes, timestamp: str) -> str:
        return self._write(self.get_final_dir(), f"final-{timestamp}.png", data)

    def get_absolute_path(self, relative_path: str) -> Path:
        """Convert a relative path to absolute."""
        return self.media_root / relative_path
