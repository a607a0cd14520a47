import dataclasses
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image

from domain.errors import CompositionError
from domain.models import FontRole, PosterLayers, TextSpec
from poster_renderer import defaults
from poster_renderer.compositor import compose, encode_png
from poster_renderer.fonts import FontRegistry, registry_for
from poster_renderer.text_fit import compute_font_size, fit_font_size
from poster_renderer.text_layer import TextRenderer, build_text_renderer, render_text_layer
from storage.file_storage import AssetStorage

logger = logging.getLogger(__name__)

CharacterSource = Union[Image.Image, bytes, str, Path]


@dataclasses.dataclass
class PosterConfig:
    # Banner text placement, as fractions of the output height
    name_y_fraction: float = defaults.NAME_Y_FRACTION
    designation_y_fraction: float = defaults.DESIGNATION_Y_FRACTION
    max_width_px: int = defaults.TEXT_MAX_WIDTH_PX

    name_base_font_size: int = defaults.NAME_BASE_FONT_SIZE
    name_min_font_size: int = defaults.NAME_MIN_FONT_SIZE
    name_glyph_width_factor: float = defaults.NAME_GLYPH_WIDTH_FACTOR
    name_color: str = defaults.NAME_COLOR
    name_letter_spacing: float = defaults.NAME_LETTER_SPACING

    designation_base_font_size: int = defaults.DESIGNATION_BASE_FONT_SIZE
    designation_min_font_size: int = defaults.DESIGNATION_MIN_FONT_SIZE
    designation_glyph_width_factor: float = defaults.DESIGNATION_GLYPH_WIDTH_FACTOR
    designation_color: str = defaults.DESIGNATION_COLOR
    designation_letter_spacing: float = defaults.DESIGNATION_LETTER_SPACING
    designation_case: str = "title"  # "title" or "as_is"

    text_fit_mode: str = "estimate"  # "estimate" or "measure"
    text_backend: str = "auto"  # "auto", "raster" or "markup"

    character_height_fraction: float = defaults.CHARACTER_HEIGHT_FRACTION
    character_top_offset: int = defaults.CHARACTER_TOP_OFFSET_PX
    character_left_offset: int = defaults.CHARACTER_LEFT_OFFSET_PX

    asset_root: str = str(defaults.ASSETS_DIR)
    background_file: str = defaults.BACKGROUND_FILE
    frame_file: str = defaults.FRAME_FILE
    name_font_file: str = defaults.NAME_FONT_FILE
    designation_font_file: str = defaults.DESIGNATION_FONT_FILE

    @classmethod
    def from_settings(cls, settings=None) -> "PosterConfig":
        if settings is None:
            from settings import settings
        return cls(
            name_y_fraction=settings.NAME_Y_FRACTION,
            designation_y_fraction=settings.DESIGNATION_Y_FRACTION,
            designation_case=settings.DESIGNATION_CASE,
            text_fit_mode=settings.TEXT_FIT_MODE,
            text_backend=settings.TEXT_BACKEND,
            asset_root=str(settings.ASSET_ROOT),
            background_file=settings.BACKGROUND_FILE,
            frame_file=settings.FRAME_FILE,
            name_font_file=settings.NAME_FONT_FILE,
            designation_font_file=settings.DESIGNATION_FONT_FILE,
        )

    def asset_storage(self) -> AssetStorage:
        return AssetStorage(
            self.asset_root,
            background_file=self.background_file,
            frame_file=self.frame_file,
            name_font_file=self.name_font_file,
            designation_font_file=self.designation_font_file,
        )


def load_poster_layers(storage: AssetStorage) -> PosterLayers:
    """Read background and frame in parallel; AssetMissingError if either fails."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="poster-assets") as pool:
        background_future = pool.submit(storage.read_background)
        frame_future = pool.submit(storage.read_frame)
        background = background_future.result()
        frame = frame_future.result()
    logger.debug(
        "[poster] assets background=%sx%s frame=%sx%s",
        background.width,
        background.height,
        frame.width,
        frame.height,
    )
    return PosterLayers(background=background, frame=frame)


def load_character_image(source: CharacterSource) -> Image.Image:
    if isinstance(source, Image.Image):
        return source
    try:
        if isinstance(source, (bytes, bytearray)):
            with Image.open(BytesIO(source)) as img:
                return img.convert("RGBA")
        with Image.open(source) as img:
            return img.convert("RGBA")
    except Exception as exc:
        raise CompositionError("decode", exc) from exc


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().upper()


def normalize_designation(designation: Optional[str], mode: str = "title") -> str:
    text = (designation or "").strip()
    if mode == "as_is":
        return text
    # "software ENGINEER" -> "Software Engineer"
    return re.sub(r"\S+", lambda m: m.group(0).upper().capitalize(), text)


def _resolve_font_size(
    text: str,
    role: FontRole,
    base: int,
    minimum: int,
    factor: float,
    letter_spacing: float,
    config: PosterConfig,
    fonts: FontRegistry,
) -> int:
    if config.text_fit_mode != "measure":
        return compute_font_size(text, base, config.max_width_px, factor, minimum)

    def measure(size: int) -> float:
        gaps = max(0, len(text) - 1)
        return fonts.text_width(text, role, size) + letter_spacing * size * gaps

    return fit_font_size(text, base, config.max_width_px, minimum, measure)


def build_text_specs(
    name: str,
    designation: str,
    config: PosterConfig,
    fonts: FontRegistry,
) -> Tuple[Optional[TextSpec], Optional[TextSpec]]:
    """Auto-sized specs for the already-normalized fields; None for empty ones."""
    name_spec = None
    if name:
        size = _resolve_font_size(
            name,
            FontRole.NAME,
            config.name_base_font_size,
            config.name_min_font_size,
            config.name_glyph_width_factor,
            config.name_letter_spacing,
            config,
            fonts,
        )
        name_spec = TextSpec(
            content=name,
            base_font_size=config.name_base_font_size,
            max_width_px=config.max_width_px,
            vertical_position_fraction=config.name_y_fraction,
            color=config.name_color,
            letter_spacing_fraction=config.name_letter_spacing,
            font_role=FontRole.NAME,
            font_size=size,
        )

    designation_spec = None
    if designation:
        size = _resolve_font_size(
            designation,
            FontRole.DESIGNATION,
            config.designation_base_font_size,
            config.designation_min_font_size,
            config.designation_glyph_width_factor,
            config.designation_letter_spacing,
            config,
            fonts,
        )
        designation_spec = TextSpec(
            content=designation,
            base_font_size=config.designation_base_font_size,
            max_width_px=config.max_width_px,
            vertical_position_fraction=config.designation_y_fraction,
            color=config.designation_color,
            letter_spacing_fraction=config.designation_letter_spacing,
            font_role=FontRole.DESIGNATION,
            font_size=size,
        )
    return name_spec, designation_spec


def merge_images(
    character_image: CharacterSource,
    name: Optional[str] = None,
    designation: Optional[str] = None,
    *,
    config: Optional[PosterConfig] = None,
    layers: Optional[PosterLayers] = None,
    storage: Optional[AssetStorage] = None,
    fonts: Optional[FontRegistry] = None,
    renderer: Optional[TextRenderer] = None,
    artifacts: Optional[Dict[str, Image.Image]] = None,
) -> Image.Image:
    """
    Build the flattened poster for one character image.

    The name is shown in capitals and the designation title-cased (unless
    configured ``as_is``). When both are empty no text layer is rendered.
    ``artifacts``, when given, receives the intermediate ``text_layer`` and
    ``frame_character`` rasters.
    """
    config = config or PosterConfig.from_settings()
    storage = storage or config.asset_storage()
    character = load_character_image(character_image)
    if layers is None:
        layers = load_poster_layers(storage)
    dims = layers.dimensions

    name_text = normalize_name(name)
    designation_text = normalize_designation(designation, config.designation_case)
    logger.info(
        "[poster] merging character=%sx%s output=%s name=%r designation=%r",
        character.width,
        character.height,
        dims,
        name_text,
        designation_text,
    )

    text_layer = None
    if name_text or designation_text:
        fonts = fonts or registry_for(storage.name_font_path, storage.designation_font_path)
        try:
            name_spec, designation_spec = build_text_specs(name_text, designation_text, config, fonts)
            text_renderer = renderer or build_text_renderer(config.text_backend, fonts)
            text_layer = render_text_layer(
                dims.width,
                dims.height,
                name_spec,
                designation_spec,
                renderer=text_renderer,
            )
        except Exception as exc:
            logger.error("[poster] text layer failed: %s", exc)
            raise CompositionError("text", exc) from exc
        if artifacts is not None:
            artifacts["text_layer"] = text_layer

    return compose(
        layers.background,
        layers.frame,
        character,
        text_layer,
        character_height_fraction=config.character_height_fraction,
        character_top_offset=config.character_top_offset,
        character_left_offset=config.character_left_offset,
        artifacts=artifacts,
    )


def render_poster_png(character_image: CharacterSource, name: Optional[str] = None, designation: Optional[str] = None, **kwargs) -> bytes:
    """``merge_images`` encoded as PNG bytes."""
    return encode_png(merge_images(character_image, name, designation, **kwargs))
