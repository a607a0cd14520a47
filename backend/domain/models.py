"""
Core domain models for the poster compositor.
These are framework-agnostic and shared by the renderer, storage and services.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image


class BlendMode(str, Enum):
    """How a layer is combined with the canvas below it."""
    OVER = "over"  # layer drawn on top of the canvas
    DEST_OVER = "dest-over"  # layer drawn behind the canvas


class FontRole(str, Enum):
    """The two text fields a poster carries."""
    NAME = "name"
    DESIGNATION = "designation"


@dataclass(frozen=True)
class Dimensions:
    """Integer pixel size of a raster."""
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Dimensions must be positive, got {self.width}x{self.height}")

    @classmethod
    def of(cls, image: Image.Image) -> "Dimensions":
        return cls(image.width, image.height)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class TextSpec:
    """
    One line of poster text.

    ``font_size`` is the resolved size after auto-fit; the renderer falls back
    to ``base_font_size`` when it has not been resolved. An empty ``content``
    means the line is skipped entirely.
    """
    content: str
    base_font_size: int
    max_width_px: int
    vertical_position_fraction: float
    color: str = "#000000"
    letter_spacing_fraction: float = 0.0
    font_role: FontRole = FontRole.NAME
    font_size: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.content

    @property
    def resolved_font_size(self) -> int:
        return self.font_size if self.font_size is not None else self.base_font_size

    @property
    def letter_spacing_px(self) -> float:
        return self.letter_spacing_fraction * self.resolved_font_size


@dataclass(frozen=True)
class CompositeLayer:
    """A raster placed on a canvas at an offset with a blend mode."""
    source: Image.Image
    top: int = 0
    left: int = 0
    blend_mode: BlendMode = BlendMode.OVER
    resize_to: Optional[Dimensions] = None


@dataclass(frozen=True)
class PosterLayers:
    """The fixed template rasters every poster is built on."""
    background: Image.Image
    frame: Image.Image

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions.of(self.background)
