"""
Text layer rendering for the poster banner.

Two backends produce the same transparent RGBA layer from the same TextSpecs:
- RasterTextBackend draws with Pillow/FreeType (primary).
- MarkupTextBackend writes an SVG document and rasterizes it with Wand
  (ImageMagick). It is the fallback for hosts where the Pillow text path is
  unusable.

Both center each line horizontally on the canvas and vertically on
``floor(height * vertical_position_fraction)``.
"""
import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape, quoteattr

from PIL import Image, ImageDraw

from domain.errors import TextBackendUnavailableError
from domain.models import Dimensions, FontRole, TextSpec
from poster_renderer import defaults
from poster_renderer.fonts import FontRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlyphRun:
    text: str
    x: float


@dataclass(frozen=True)
class TextPlacement:
    """Where one TextSpec lands on the canvas."""
    spec: TextSpec
    font_size: int
    center_x: float
    y: int
    width: float
    runs: Tuple[GlyphRun, ...]

    @property
    def left(self) -> float:
        return self.center_x - self.width / 2


def text_baseline_y(canvas_height: int, fraction: float) -> int:
    return math.floor(canvas_height * fraction)


def layout_text(spec: TextSpec, canvas_width: int, canvas_height: int, fonts: FontRegistry) -> TextPlacement:
    """
    Measure ``spec`` and compute its glyph runs.

    Without letter spacing the whole string is a single run. With letter
    spacing every glyph is its own run, advanced by its width plus
    ``letter_spacing_fraction * font_size`` (no trailing gap after the last).
    """
    size = spec.resolved_font_size
    center_x = canvas_width / 2
    y = text_baseline_y(canvas_height, spec.vertical_position_fraction)

    if not spec.letter_spacing_fraction:
        width = fonts.text_width(spec.content, spec.font_role, size)
        runs = (GlyphRun(spec.content, center_x - width / 2),)
        return TextPlacement(spec, size, center_x, y, width, runs)

    spacing = spec.letter_spacing_px
    widths = fonts.glyph_widths(spec.content, spec.font_role, size)
    total = sum(widths) + spacing * max(0, len(widths) - 1)
    x = center_x - total / 2
    glyph_runs: List[GlyphRun] = []
    for ch, w in zip(spec.content, widths):
        glyph_runs.append(GlyphRun(ch, x))
        x += w + spacing
    return TextPlacement(spec, size, center_x, y, total, tuple(glyph_runs))


class TextRenderer:
    """Renders non-empty TextSpecs onto a transparent canvas."""

    name = "base"

    def render(self, dimensions: Dimensions, specs: Sequence[TextSpec]) -> Image.Image:
        raise NotImplementedError


class RasterTextBackend(TextRenderer):
    name = "raster"

    def __init__(self, fonts: FontRegistry):
        self.fonts = fonts

    def render(self, dimensions: Dimensions, specs: Sequence[TextSpec]) -> Image.Image:
        layer = Image.new("RGBA", dimensions.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        try:
            for spec in specs:
                placement = layout_text(spec, dimensions.width, dimensions.height, self.fonts)
                font = self.fonts.font(spec.font_role, placement.font_size)
                for run in placement.runs:
                    # "lm": left edge, vertical middle of the line
                    draw.text((run.x, placement.y), run.text, font=font, fill=spec.color, anchor="lm")
        except (OSError, ImportError, ValueError) as exc:
            # missing FreeType support surfaces as any of these
            raise TextBackendUnavailableError(f"Pillow text backend unavailable: {exc}") from exc
        return layer


def _font_weight(role: FontRole) -> int:
    return defaults.NAME_FONT_WEIGHT if role == FontRole.NAME else defaults.DESIGNATION_FONT_WEIGHT


def build_svg(dimensions: Dimensions, specs: Sequence[TextSpec], fonts: Optional[FontRegistry] = None) -> str:
    """SVG document drawing ``specs`` with the same geometry as the raster backend."""
    w, h = dimensions.size
    font_faces: List[str] = []
    families = {}
    for role in (FontRole.NAME, FontRole.DESIGNATION):
        family = fonts.family(role) if fonts else (
            defaults.NAME_FONT_FAMILY if role == FontRole.NAME else defaults.DESIGNATION_FONT_FAMILY
        )
        data_uri = fonts.font_data_uri(role) if fonts else None
        if data_uri:
            embedded = fonts.embedded_family(role)
            font_faces.append(f'@font-face {{ font-family: "{embedded}"; src: url("{data_uri}"); }}')
            family = f'"{embedded}", {family}'
        families[role] = family

    elements: List[str] = []
    for spec in specs:
        size = spec.resolved_font_size
        y = text_baseline_y(h, spec.vertical_position_fraction)
        # SVG letter-spacing also pads after the last glyph; recenter on n-1 gaps
        x = w / 2 + spec.letter_spacing_px / 2
        attrs = [
            f'x="{x:g}"',
            f'y="{y}"',
            f"fill={quoteattr(spec.color)}",
            f"font-family={quoteattr(families[spec.font_role])}",
            f'font-size="{size}"',
            f'font-weight="{_font_weight(spec.font_role)}"',
            'text-anchor="middle"',
            'dominant-baseline="middle"',
        ]
        if spec.letter_spacing_fraction:
            attrs.append(f'letter-spacing="{spec.letter_spacing_px:.2f}"')
        elements.append(f"<text {' '.join(attrs)}>{escape(spec.content)}</text>")

    style = f"<defs><style>{' '.join(font_faces)}</style></defs>" if font_faces else ""
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" viewBox="0 0 {w} {h}">'
        f"{style}{''.join(elements)}</svg>"
    )


class MarkupTextBackend(TextRenderer):
    name = "markup"

    def __init__(self, fonts: Optional[FontRegistry] = None):
        self.fonts = fonts

    def rasterize_svg(self, svg: str) -> bytes:
        try:
            from wand.color import Color as WandColor
            from wand.image import Image as WandImage
        except ImportError as exc:
            raise TextBackendUnavailableError(f"Wand/ImageMagick unavailable: {exc}") from exc

        with WandImage(blob=svg.encode("utf-8"), format="svg", background=WandColor("transparent")) as img:
            img.alpha_channel = "set"
            img.format = "png"
            return img.make_blob()

    def render(self, dimensions: Dimensions, specs: Sequence[TextSpec]) -> Image.Image:
        svg = build_svg(dimensions, specs, self.fonts)
        png = self.rasterize_svg(svg)
        layer = Image.open(BytesIO(png)).convert("RGBA")
        if layer.size != dimensions.size:
            logger.warning("[text] svg rasterized at %sx%s, expected %s", layer.width, layer.height, dimensions)
            canvas = Image.new("RGBA", dimensions.size, (0, 0, 0, 0))
            canvas.paste(layer.crop((0, 0, dimensions.width, dimensions.height)), (0, 0))
            layer = canvas
        return layer


class FallbackTextRenderer(TextRenderer):
    """Try ``primary``; on any failure log it and render with ``fallback``."""

    name = "auto"

    def __init__(self, primary: TextRenderer, fallback: TextRenderer):
        self.primary = primary
        self.fallback = fallback

    def render(self, dimensions: Dimensions, specs: Sequence[TextSpec]) -> Image.Image:
        try:
            return self.primary.render(dimensions, specs)
        except Exception:
            logger.warning(
                "[text] %s backend failed; falling back to %s",
                self.primary.name,
                self.fallback.name,
                exc_info=True,
            )
        return self.fallback.render(dimensions, specs)


def build_text_renderer(mode: str, fonts: FontRegistry) -> TextRenderer:
    if mode == "raster":
        return RasterTextBackend(fonts)
    if mode == "markup":
        return MarkupTextBackend(fonts)
    if mode != "auto":
        logger.warning("[text] unknown text backend %r; using auto", mode)
    return FallbackTextRenderer(RasterTextBackend(fonts), MarkupTextBackend(fonts))


def render_text_layer(
    canvas_width: int,
    canvas_height: int,
    name_spec: Optional[TextSpec] = None,
    designation_spec: Optional[TextSpec] = None,
    renderer: Optional[TextRenderer] = None,
    fonts: Optional[FontRegistry] = None,
) -> Image.Image:
    """Transparent RGBA layer with the non-empty name/designation lines drawn."""
    dimensions = Dimensions(canvas_width, canvas_height)
    specs = [s for s in (name_spec, designation_spec) if s is not None and not s.is_empty]
    if not specs:
        return Image.new("RGBA", dimensions.size, (0, 0, 0, 0))
    if renderer is None:
        renderer = build_text_renderer("auto", fonts or FontRegistry())
    return renderer.render(dimensions, specs)
