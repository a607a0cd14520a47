"""
Layer compositing for the poster.

Stack order is fixed, bottom to top: background, character, frame, text.
The character sits *behind* the frame so the frame's opaque pixels occlude it
and it only shows through the frame's transparent window.
"""
import logging
import math
from io import BytesIO
from typing import Dict, Iterable, Optional

from PIL import Image

from domain.errors import CompositionError
from domain.models import BlendMode, CompositeLayer, Dimensions
from poster_renderer import defaults

logger = logging.getLogger(__name__)


def _resize_rgba_premultiplied(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    """
    Alpha-safe resize to avoid dark halos on semi-transparent edges.
    Resamples in premultiplied space (Pillow's "RGBa" mode).
    """
    if img.size == size:
        return img.copy()
    if img.mode != "RGBA":
        return img.resize(size, Image.Resampling.LANCZOS)
    return img.convert("RGBa").resize(size, Image.Resampling.LANCZOS).convert("RGBA")


def cover_fit(image: Image.Image, target_width: int, target_height: int, anchor: str = "center") -> Image.Image:
    """
    Resize/crop to cover the target box while retaining aspect ratio.

    ``anchor="top"`` keeps the top edge and crops overflow from the bottom;
    horizontal overflow is always cropped evenly from both sides.
    """
    scale = max(target_width / image.width, target_height / image.height)
    new_size = (
        max(target_width, round(image.width * scale)),
        max(target_height, round(image.height * scale)),
    )
    resized = _resize_rgba_premultiplied(image, new_size)

    left = (resized.width - target_width) // 2
    top = 0 if anchor == "top" else (resized.height - target_height) // 2
    return resized.crop((left, top, left + target_width, top + target_height))


def composite_layers(base: Image.Image, layers: Iterable[CompositeLayer]) -> Image.Image:
    """Apply ``layers`` in order onto a copy of ``base``; the canvas size never changes."""
    canvas = base.convert("RGBA") if base.mode != "RGBA" else base.copy()
    for layer in layers:
        source = layer.source if layer.source.mode == "RGBA" else layer.source.convert("RGBA")
        if layer.resize_to is not None:
            source = _resize_rgba_premultiplied(source, layer.resize_to.size)
        placed = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        placed.paste(source, (layer.left, layer.top))
        if layer.blend_mode == BlendMode.DEST_OVER:
            canvas = Image.alpha_composite(placed, canvas)
        else:
            canvas = Image.alpha_composite(canvas, placed)
    return canvas


def compose(
    background: Image.Image,
    frame: Image.Image,
    character: Image.Image,
    text_layer: Optional[Image.Image] = None,
    *,
    character_height_fraction: float = defaults.CHARACTER_HEIGHT_FRACTION,
    character_top_offset: int = defaults.CHARACTER_TOP_OFFSET_PX,
    character_left_offset: int = defaults.CHARACTER_LEFT_OFFSET_PX,
    artifacts: Optional[Dict[str, Image.Image]] = None,
) -> Image.Image:
    """
    Flatten character, frame and optional text onto ``background``.

    The output always has the background's dimensions. Any failure is raised
    as CompositionError naming the stage; nothing partial is returned. When
    ``artifacts`` is given, the fitted frame+character layer is stored in it
    under ``"frame_character"``.
    """
    stage = "background"
    try:
        base = background.convert("RGBA")
        dims = Dimensions.of(base)

        stage = "frame"
        frame_fit = _resize_rgba_premultiplied(frame.convert("RGBA"), dims.size)

        stage = "character"
        window = Dimensions(frame_fit.width, max(1, math.floor(frame_fit.height * character_height_fraction)))
        character_fit = cover_fit(character.convert("RGBA"), window.width, window.height, anchor="top")
        framed = composite_layers(
            frame_fit,
            [
                CompositeLayer(
                    source=character_fit,
                    top=character_top_offset,
                    left=character_left_offset,
                    blend_mode=BlendMode.DEST_OVER,
                )
            ],
        )

        stage = "fit"
        framed = cover_fit(framed, dims.width, dims.height, anchor="center")
        if artifacts is not None:
            artifacts["frame_character"] = framed

        layers = [CompositeLayer(source=framed)]
        if text_layer is not None:
            stage = "text"
            layers.append(CompositeLayer(source=text_layer, top=0, left=0, blend_mode=BlendMode.OVER))

        stage = "flatten"
        final = composite_layers(base, layers)
    except CompositionError:
        raise
    except Exception as exc:
        logger.error("[compose] stage=%s failed: %s", stage, exc)
        raise CompositionError(stage, exc) from exc

    logger.debug(
        "[compose] output=%s frame=%sx%s character_src=%sx%s window=%s text=%s",
        dims,
        frame.width,
        frame.height,
        character.width,
        character.height,
        window,
        text_layer is not None,
    )
    return final


def encode_png(image: Image.Image) -> bytes:
    """Lossless PNG bytes for ``image``."""
    buf = BytesIO()
    try:
        image.save(buf, format="PNG")
    except Exception as exc:
        raise CompositionError("encode", exc) from exc
    return buf.getvalue()
