"""
Font loading and glyph metrics for poster text.

Font files are read into memory once per registry (the "registration" step)
and shared by both text backends: Pillow loads faces from the cached bytes and
the SVG path embeds the same bytes as @font-face data URIs. A missing font is
never fatal; a platform sans-serif is substituted.
"""
import base64
import logging
import threading
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from PIL import ImageFont

from domain.errors import FontAssetMissingError
from domain.models import FontRole
from poster_renderer import defaults

logger = logging.getLogger(__name__)

PILFont = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


def _read_font_file(path: Optional[Path]) -> bytes:
    if path is None:
        raise FontAssetMissingError("No font path configured")
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise FontAssetMissingError(f"Font '{path}' not found") from exc
    try:
        ImageFont.truetype(BytesIO(data), 12)
    except ImportError as exc:
        # Pillow without FreeType; the bytes are still embedded by the SVG backend
        logger.warning("[fonts] cannot validate %s: %s", path, exc)
    except OSError as exc:
        raise FontAssetMissingError(f"Font '{path}' is not a readable TrueType/OpenType face") from exc
    return data


def load_fallback_font(size: int) -> PILFont:
    """Return a platform sans-serif at ``size``, or Pillow's built-in face."""
    for candidate in defaults.FALLBACK_FONT_FILES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


class FontRegistry:
    """
    Owns the poster fonts for one renderer configuration.

    ``ensure_registered`` is idempotent and safe to call from concurrent
    requests: the files are read at most once per registry.
    """

    def __init__(
        self,
        name_font_path: Optional[Path] = None,
        designation_font_path: Optional[Path] = None,
    ):
        self._paths: Dict[FontRole, Optional[Path]] = {
            FontRole.NAME: Path(name_font_path) if name_font_path else None,
            FontRole.DESIGNATION: Path(designation_font_path) if designation_font_path else None,
        }
        self._lock = threading.Lock()
        self._font_bytes: Dict[FontRole, Optional[bytes]] = {}
        self._fonts: Dict[Tuple[FontRole, int], PILFont] = {}
        self.registered = False

    def ensure_registered(self) -> None:
        if self.registered:
            return
        with self._lock:
            if self.registered:
                return
            for role, path in self._paths.items():
                try:
                    self._font_bytes[role] = _read_font_file(path)
                    logger.info("[fonts] registered %s font from %s", role.value, path)
                except FontAssetMissingError as exc:
                    logger.warning("[fonts] %s; using default sans-serif for %s text", exc, role.value)
                    self._font_bytes[role] = None
            self.registered = True

    def has_custom_font(self, role: FontRole) -> bool:
        self.ensure_registered()
        return self._font_bytes.get(role) is not None

    def font(self, role: FontRole, size: int) -> PILFont:
        """Pillow font for ``role`` at ``size`` px (cached)."""
        self.ensure_registered()
        size = max(1, int(size))
        key = (role, size)
        cached = self._fonts.get(key)
        if cached is not None:
            return cached
        data = self._font_bytes.get(role)
        font = ImageFont.truetype(BytesIO(data), size) if data else load_fallback_font(size)
        self._fonts[key] = font
        return font

    def text_width(self, text: str, role: FontRole, size: int) -> float:
        if not text:
            return 0.0
        return float(self.font(role, size).getlength(text))

    def glyph_widths(self, text: str, role: FontRole, size: int) -> List[float]:
        font = self.font(role, size)
        return [float(font.getlength(ch)) for ch in text]

    def font_data_uri(self, role: FontRole) -> Optional[str]:
        self.ensure_registered()
        data = self._font_bytes.get(role)
        if not data:
            return None
        return "data:font/ttf;base64," + base64.b64encode(data).decode("ascii")

    def family(self, role: FontRole) -> str:
        if role == FontRole.NAME:
            return defaults.NAME_FONT_FAMILY
        return defaults.DESIGNATION_FONT_FAMILY

    def embedded_family(self, role: FontRole) -> str:
        """Family name used for the @font-face rule of an embedded font."""
        return "Poster Name" if role == FontRole.NAME else "Poster Designation"


_registries: Dict[Tuple[Optional[str], Optional[str]], FontRegistry] = {}
_registries_lock = threading.Lock()


def registry_for(name_font_path: Optional[Path], designation_font_path: Optional[Path]) -> FontRegistry:
    """Shared registry per font-path pair, so registration happens once per process."""
    key = (
        str(name_font_path) if name_font_path else None,
        str(designation_font_path) if designation_font_path else None,
    )
    with _registries_lock:
        registry = _registries.get(key)
        if registry is None:
            registry = FontRegistry(name_font_path, designation_font_path)
            _registries[key] = registry
        return registry
