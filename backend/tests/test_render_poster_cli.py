from PIL import Image

from conftest import make_character
from scripts.render_poster import build_parser, main


def test_parser_requires_character():
    args = build_parser().parse_args(["--character", "c.png", "--text-backend", "raster"])
    assert args.character == "c.png"
    assert args.text_backend == "raster"
    assert args.name is None


def test_writes_poster_to_out(tmp_path, asset_root):
    character = tmp_path / "character.png"
    make_character().save(character)
    out = tmp_path / "out" / "poster.png"

    code = main(
        [
            "--character",
            str(character),
            "--name",
            "Jane",
            "--designation",
            "pilot",
            "--asset-root",
            str(asset_root),
            "--text-backend",
            "raster",
            "--out",
            str(out),
        ]
    )
    assert code == 0
    with Image.open(out) as img:
        assert img.size == (270, 480)


def test_writes_into_media_root(tmp_path, asset_root):
    character = tmp_path / "character.png"
    make_character().save(character)
    media = tmp_path / "media"

    code = main(
        [
            "--character",
            str(character),
            "--asset-root",
            str(asset_root),
            "--media-root",
            str(media),
            "--timestamp",
            "99",
        ]
    )
    assert code == 0
    assert (media / "final" / "final-99.png").exists()


def test_missing_character_returns_2(tmp_path):
    assert main(["--character", str(tmp_path / "nope.png")]) == 2


def test_missing_assets_returns_1(tmp_path):
    character = tmp_path / "character.png"
    make_character().save(character)
    code = main(["--character", str(character), "--asset-root", str(tmp_path / "empty"), "--out", str(tmp_path / "p.png")])
    assert code == 1
