import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from PIL import Image

from poster_renderer.compositor import encode_png
from poster_renderer.renderer import PosterConfig, load_character_image, merge_images
from storage.file_storage import PosterStorage

logger = logging.getLogger(__name__)


@dataclass
class PosterUpload:
    data: bytes
    filename: str


@dataclass
class PosterResult:
    final_path: str
    generated_path: str
    upload_path: Optional[str] = None
    width: int = 0
    height: int = 0
    debug_dir: Optional[Path] = None


def _fingerprint(timestamp: str, name: Optional[str], designation: Optional[str], character: bytes) -> str:
    payload = {
        "timestamp": timestamp,
        "name": name or "",
        "designation": designation or "",
        "character_sha": hashlib.sha256(character).hexdigest(),
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


def _write_debug_artifacts(
    debug_dir: Path,
    character: Image.Image,
    poster: Image.Image,
    layers: Dict[str, Optional[Image.Image]],
    png: bytes,
    meta: dict,
) -> None:
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        character.save(debug_dir / "debug_character_source.png")
        for layer_name, layer in layers.items():
            if layer is not None:
                layer.save(debug_dir / f"debug_{layer_name}.png")
        poster.save(debug_dir / "debug_poster_final.png")
        meta = dict(meta)
        meta["final_sha"] = hashlib.sha256(png).hexdigest()[:12]
        (debug_dir / "debug_poster_meta.json").write_text(json.dumps(meta, indent=2))
    except Exception:
        logger.warning("[debug-artifacts] failed to write into %s", debug_dir, exc_info=True)


def generate_poster(
    character_image: bytes,
    name: Optional[str] = None,
    designation: Optional[str] = None,
    *,
    storage: PosterStorage,
    config: Optional[PosterConfig] = None,
    timestamp: Optional[str] = None,
    upload: Optional[PosterUpload] = None,
    debug: Optional[bool] = None,
) -> PosterResult:
    """
    Persist the inputs, render the poster and persist the final PNG.

    Rendering errors propagate unchanged; nothing is written to final/ when
    rendering fails.
    """
    timestamp = timestamp or str(int(time.time() * 1000))
    if debug is None:
        from settings import settings

        debug = settings.DEBUG_ARTIFACTS

    upload_path = None
    if upload is not None:
        upload_path = storage.save_upload(upload.data, upload.filename, timestamp)
    generated_path = storage.save_generated(character_image, timestamp)

    character = load_character_image(character_image)
    intermediates: Dict[str, Optional[Image.Image]] = {}
    poster = merge_images(
        character,
        name,
        designation,
        config=config,
        artifacts=intermediates if debug else None,
    )
    png = encode_png(poster)
    final_path = storage.save_final(png, timestamp)

    debug_dir = None
    if debug:
        stub = _fingerprint(timestamp, name, designation, character_image)[:12]
        debug_dir = storage.get_debug_dir(stub)
        _write_debug_artifacts(
            debug_dir,
            character,
            poster,
            intermediates,
            png,
            {
                "timestamp": timestamp,
                "name": name,
                "designation": designation,
                "character_size": [character.width, character.height],
                "poster_size": [poster.width, poster.height],
                "final_path": final_path,
                "layers": sorted(k for k, v in intermediates.items() if v is not None),
            },
        )

    logger.info(
        "[poster] timestamp=%s final=%s generated=%s size=%sx%s bytes=%s",
        timestamp,
        final_path,
        generated_path,
        poster.width,
        poster.height,
        len(png),
    )
    return PosterResult(
        final_path=final_path,
        generated_path=generated_path,
        upload_path=upload_path,
        width=poster.width,
        height=poster.height,
        debug_dir=debug_dir,
    )
