"""
Tests for the poster pipeline (merge_images).

Run with: pytest tests/test_renderer.py -v
"""
import dataclasses
from io import BytesIO

import pytest
from PIL import Image, ImageFont

from conftest import BG_COLOR, CHARACTER_COLOR, close_to, make_character
from domain.errors import AssetMissingError, CompositionError, TextBackendUnavailableError
from domain.models import FontRole
from poster_renderer.compositor import compose
from poster_renderer.fonts import FontRegistry
from poster_renderer.renderer import (
    PosterConfig,
    load_poster_layers,
    merge_images,
    normalize_designation,
    normalize_name,
    render_poster_png,
)
from poster_renderer.text_layer import MarkupTextBackend, TextRenderer


class RecordingRenderer(TextRenderer):
    name = "recording"

    def __init__(self):
        self.specs = []

    def render(self, dimensions, specs):
        self.specs.extend(specs)
        return Image.new("RGBA", dimensions.size, (0, 0, 0, 0))


class BrokenRenderer(TextRenderer):
    name = "broken"

    def render(self, dimensions, specs):
        raise TextBackendUnavailableError("nothing works")


class TestNormalization:
    def test_name_is_uppercased(self):
        assert normalize_name("jane doe") == "JANE DOE"
        assert normalize_name(None) == ""
        assert normalize_name("   ") == ""

    def test_designation_title_case(self):
        assert normalize_designation("software ENGINEER") == "Software Engineer"
        assert normalize_designation("head of r&d") == "Head Of R&d"
        assert normalize_designation(None) == ""

    def test_designation_as_is(self):
        assert normalize_designation("iOS engineer", mode="as_is") == "iOS engineer"


class TestLoadLayers:
    def test_reads_background_and_frame(self, asset_storage):
        layers = load_poster_layers(asset_storage)
        assert layers.background.size == (270, 480)
        assert layers.frame.size == (270, 480)
        assert layers.dimensions.size == (270, 480)

    def test_missing_background_is_fatal(self, asset_root, asset_storage):
        (asset_root / "background.png").unlink()
        with pytest.raises(AssetMissingError) as exc_info:
            load_poster_layers(asset_storage)
        assert exc_info.value.asset == "background"

    def test_missing_frame_is_fatal(self, asset_root, asset_storage):
        (asset_root / "layer.png").unlink()
        with pytest.raises(AssetMissingError):
            load_poster_layers(asset_storage)


class TestMergeImages:
    @pytest.mark.parametrize("char_size", [(100, 150), (512, 512), (1600, 900)])
    def test_output_has_background_dimensions(self, poster_config, char_size):
        poster = merge_images(make_character(char_size), "Jane", "Engineer", config=poster_config)
        assert poster.size == (270, 480)

    def test_output_tracks_a_different_background(self, poster_config, asset_root):
        Image.new("RGBA", (300, 200), BG_COLOR).save(asset_root / "background.png")
        poster = merge_images(make_character(), None, None, config=poster_config)
        assert poster.size == (300, 200)

    def test_identical_inputs_give_identical_pixels(self, poster_config, character_png):
        first = merge_images(character_png, "Jane Doe", "software engineer", config=poster_config)
        second = merge_images(character_png, "Jane Doe", "software engineer", config=poster_config)
        assert first.tobytes() == second.tobytes()

    @pytest.mark.parametrize("name,designation", [(None, None), ("", ""), ("  ", None)])
    def test_no_text_equals_plain_composition(self, poster_config, asset_storage, name, designation):
        character = make_character()
        renderer = RecordingRenderer()
        poster = merge_images(character, name, designation, config=poster_config, renderer=renderer)

        layers = load_poster_layers(asset_storage)
        expected = compose(layers.background, layers.frame, character, character_top_offset=40)
        assert poster.tobytes() == expected.tobytes()
        assert renderer.specs == []

    def test_text_is_drawn_on_the_banner(self, poster_config):
        character = make_character()
        plain = merge_images(character, None, None, config=poster_config)
        with_text = merge_images(character, "Jane", "Engineer", config=poster_config)
        assert plain.size == with_text.size
        assert plain.tobytes() != with_text.tobytes()

    def test_specs_built_from_normalized_fields(self, poster_config):
        renderer = RecordingRenderer()
        merge_images(make_character(), "jane doe", "software ENGINEER", config=poster_config, renderer=renderer)

        name_spec, designation_spec = renderer.specs
        assert name_spec.content == "JANE DOE"
        assert name_spec.font_role == FontRole.NAME
        assert name_spec.font_size == 80
        assert name_spec.vertical_position_fraction == 0.752
        assert name_spec.letter_spacing_fraction == 0.0

        assert designation_spec.content == "Software Engineer"
        assert designation_spec.font_role == FontRole.DESIGNATION
        assert designation_spec.font_size == 42
        assert designation_spec.vertical_position_fraction == 0.784
        assert designation_spec.letter_spacing_fraction == pytest.approx(-0.04)

    def test_long_name_is_scaled_down(self, poster_config):
        renderer = RecordingRenderer()
        merge_images(make_character(), "alexander hamiltons", None, config=poster_config, renderer=renderer)
        (name_spec,) = renderer.specs
        assert name_spec.font_size == 78

    def test_only_designation_skips_name(self, poster_config):
        renderer = RecordingRenderer()
        merge_images(make_character(), None, "pilot", config=poster_config, renderer=renderer)
        assert [s.content for s in renderer.specs] == ["Pilot"]

    def test_positions_and_case_are_configurable(self, poster_config):
        config = dataclasses.replace(
            poster_config,
            name_y_fraction=0.742,
            designation_y_fraction=0.774,
            designation_case="as_is",
        )
        renderer = RecordingRenderer()
        merge_images(make_character(), "Jane", "iOS engineer", config=config, renderer=renderer)
        name_spec, designation_spec = renderer.specs
        assert name_spec.vertical_position_fraction == 0.742
        assert designation_spec.vertical_position_fraction == 0.774
        assert designation_spec.content == "iOS engineer"

    def test_measure_mode_respects_floor(self, poster_config):
        config = dataclasses.replace(poster_config, text_fit_mode="measure")
        renderer = RecordingRenderer()
        merge_images(
            make_character(),
            "W" * 60,
            None,
            config=config,
            renderer=renderer,
            fonts=FontRegistry(None, None),
        )
        (name_spec,) = renderer.specs
        assert config.name_min_font_size <= name_spec.font_size < config.name_base_font_size

    def test_markup_fallback_works_without_freetype(self, monkeypatch, poster_config, asset_root):
        (asset_root / "CalSans-SemiBold.ttf").write_bytes(b"name-font-bytes")
        (asset_root / "Geist-Regular.ttf").write_bytes(b"designation-font-bytes")

        def no_freetype(*args, **kwargs):
            raise ImportError("The _imagingft C module is not installed")

        monkeypatch.setattr(ImageFont, "truetype", no_freetype)
        seen = {}

        def fake_rasterize(self, svg):
            seen["svg"] = svg
            layer = Image.new("RGBA", (270, 480), (0, 0, 0, 0))
            layer.putpixel((135, 360), (0, 0, 0, 255))
            buf = BytesIO()
            layer.save(buf, format="PNG")
            return buf.getvalue()

        monkeypatch.setattr(MarkupTextBackend, "rasterize_svg", fake_rasterize)
        config = dataclasses.replace(poster_config, text_backend="auto")
        fonts = FontRegistry(asset_root / "CalSans-SemiBold.ttf", asset_root / "Geist-Regular.ttf")

        poster = merge_images(make_character(), "Jane", "Engineer", config=config, fonts=fonts)

        assert poster.size == (270, 480)
        assert poster.getpixel((135, 360)) == (0, 0, 0, 255)
        assert fonts.registered
        assert fonts.has_custom_font(FontRole.NAME)
        assert "data:font/ttf;base64," in seen["svg"]

    def test_intermediate_layers_are_exposed(self, poster_config):
        artifacts = {}
        merge_images(make_character(), "Jane", None, config=poster_config, artifacts=artifacts)
        assert set(artifacts) == {"frame_character", "text_layer"}
        assert artifacts["frame_character"].size == (270, 480)
        assert close_to(artifacts["frame_character"].getpixel((135, 100)), CHARACTER_COLOR)
        # nothing but the banner text on the text layer
        assert artifacts["text_layer"].getpixel((135, 100))[3] == 0

        no_text = {}
        merge_images(make_character(), None, None, config=poster_config, artifacts=no_text)
        assert set(no_text) == {"frame_character"}

    def test_text_failure_is_wrapped(self, poster_config):
        with pytest.raises(CompositionError) as exc_info:
            merge_images(make_character(), "Jane", None, config=poster_config, renderer=BrokenRenderer())
        assert exc_info.value.stage == "text"

    def test_undecodable_character_is_wrapped(self, poster_config):
        with pytest.raises(CompositionError) as exc_info:
            merge_images(b"not an image", "Jane", None, config=poster_config)
        assert exc_info.value.stage == "decode"

    def test_missing_assets_abort(self, poster_config, asset_root):
        (asset_root / "layer.png").unlink()
        with pytest.raises(AssetMissingError):
            merge_images(make_character(), "Jane", None, config=poster_config)


def test_render_poster_png_returns_png(poster_config, character_png):
    data = render_poster_png(character_png, "Jane", "Engineer", config=poster_config)
    assert data.startswith(b"\x89PNG")


def test_config_from_settings(monkeypatch):
    from settings import Settings

    monkeypatch.setenv("POSTER_NAME_Y_FRACTION", "0.742")
    monkeypatch.setenv("POSTER_TEXT_BACKEND", "markup")
    config = PosterConfig.from_settings(Settings())
    assert config.name_y_fraction == 0.742
    assert config.designation_y_fraction == 0.784
    assert config.text_backend == "markup"
