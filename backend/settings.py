import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.ASSET_ROOT: Path = Path(os.getenv("POSTER_ASSET_ROOT", str(BACKEND_ROOT / "assets")))
        self.MEDIA_ROOT: Path = Path(os.getenv("POSTER_MEDIA_ROOT", str(BACKEND_ROOT / "media")))
        self.BACKGROUND_FILE: str = os.getenv("POSTER_BACKGROUND_FILE", "background.png")
        self.FRAME_FILE: str = os.getenv("POSTER_FRAME_FILE", "layer.png")
        self.NAME_FONT_FILE: str = os.getenv("POSTER_NAME_FONT_FILE", "CalSans-SemiBold.ttf")
        self.DESIGNATION_FONT_FILE: str = os.getenv("POSTER_DESIGNATION_FONT_FILE", "Geist-Regular.ttf")
        self.NAME_Y_FRACTION: float = _as_float(os.getenv("POSTER_NAME_Y_FRACTION"), 0.752)
        self.DESIGNATION_Y_FRACTION: float = _as_float(os.getenv("POSTER_DESIGNATION_Y_FRACTION"), 0.784)
        # "title" or "as_is"
        self.DESIGNATION_CASE: str = os.getenv("POSTER_DESIGNATION_CASE", "title").strip().lower()
        # "estimate" or "measure"
        self.TEXT_FIT_MODE: str = os.getenv("POSTER_TEXT_FIT_MODE", "estimate").strip().lower()
        # "auto", "raster" or "markup"
        self.TEXT_BACKEND: str = os.getenv("POSTER_TEXT_BACKEND", "auto").strip().lower()
        self.DEBUG_ARTIFACTS: bool = _as_bool(os.getenv("POSTER_DEBUG_ARTIFACTS"), False)


settings = Settings()
