from pathlib import Path

# Base asset locations within the backend
PACKAGE_DIR = Path(__file__).resolve().parent
ASSETS_DIR = PACKAGE_DIR.parent / "assets"

# Default template assets
BACKGROUND_FILE = "background.png"
FRAME_FILE = "layer.png"
NAME_FONT_FILE = "CalSans-SemiBold.ttf"
DESIGNATION_FONT_FILE = "Geist-Regular.ttf"

# Text banner geometry (visible width of the white banner)
TEXT_MAX_WIDTH_PX = 900
NAME_Y_FRACTION = 0.752
DESIGNATION_Y_FRACTION = 0.784

# Name: display face, all caps
NAME_BASE_FONT_SIZE = 80
NAME_MIN_FONT_SIZE = 24
NAME_GLYPH_WIDTH_FACTOR = 0.6
NAME_COLOR = "#000000"
NAME_LETTER_SPACING = 0.0
NAME_FONT_WEIGHT = 800

# Designation: regular face, tighter tracking
DESIGNATION_BASE_FONT_SIZE = 42
DESIGNATION_MIN_FONT_SIZE = 18
DESIGNATION_GLYPH_WIDTH_FACTOR = 0.5
DESIGNATION_COLOR = "#222222"
DESIGNATION_LETTER_SPACING = -0.04
DESIGNATION_FONT_WEIGHT = 500

# Character window inside the frame
CHARACTER_HEIGHT_FRACTION = 0.60
CHARACTER_TOP_OFFSET_PX = 350
CHARACTER_LEFT_OFFSET_PX = 0

# Platform fallbacks when the bundled fonts are absent
FALLBACK_FONT_FILES = ("DejaVuSans.ttf", "Arial.ttf", "LiberationSans-Regular.ttf")
NAME_FONT_FAMILY = '"Cal Sans", "DejaVu Sans", "Arial", sans-serif'
DESIGNATION_FONT_FAMILY = '"Geist", "Inter", "DejaVu Sans", "Arial", sans-serif'
