"""Pillow-backed image driver."""

import logging
from pathlib import Path
from typing import Any, Optional

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from skills.schema import ExecutorType, Skill

from ..errors import DriverError
from .base import Driver, ProgressCallback, read_float

logger = logging.getLogger("skillchain")

JPEG_EXTENSIONS = {".jpg", ".jpeg"}


def _resize(img: Image.Image, params: dict[str, Any]) -> Image.Image:
    percent = read_float(params, "percent", 100)
    if percent <= 0:
        raise DriverError("resize percent must be greater than 0")
    width = max(1, int(img.width * percent / 100))
    height = max(1, int(img.height * percent / 100))
    return img.resize((width, height), Image.Resampling.LANCZOS)


def _grayscale(img: Image.Image, params: dict[str, Any]) -> Image.Image:
    return ImageOps.grayscale(img)


def _blur(img: Image.Image, params: dict[str, Any]) -> Image.Image:
    return img.filter(ImageFilter.GaussianBlur(read_float(params, "radius", 2.0)))


def _unchanged(img: Image.Image, params: dict[str, Any]) -> Image.Image:
    # Re-encoding happens on save; the output extension picks the format.
    # Copy so the result outlives the source file handle.
    return img.copy()


HANDLERS = {
    "resize": _resize,
    "grayscale": _grayscale,
    "blur": _blur,
    "compress": _unchanged,
    "convert_to_jpeg": _unchanged,
    "convert_to_png": _unchanged,
}


class ImageDriver(Driver):
    """Runs ``native`` image skills with Pillow."""

    id = "image"

    def supports(self, skill: Skill) -> bool:
        return skill.driver == self.id

    def handler_name(self, skill: Skill) -> str:
        return skill.executor.handler or skill.id

    def execute(
        self,
        input_path: Path,
        output_path: Path,
        skill: Skill,
        params: dict[str, Any],
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        if skill.executor.kind not in (None, ExecutorType.NATIVE):
            raise DriverError(f"image driver cannot run executor type: {skill.executor.type}")
        handler = HANDLERS.get(self.handler_name(skill))
        if handler is None:
            raise DriverError(f"unsupported image skill: {self.handler_name(skill)}")

        if progress:
            progress(0.1)
        try:
            with Image.open(input_path) as src:
                src.load()
                img = handler(src, params)
        except (UnidentifiedImageError, OSError) as exc:
            raise DriverError(f"cannot open image {input_path}: {exc}") from exc
        except ValueError as exc:
            raise DriverError(f"image skill '{skill.id}' failed: {exc}") from exc
        if progress:
            progress(0.6)

        self._save(img, Path(output_path), skill, params)
        if progress:
            progress(1.0)

    def _save(self, img: Image.Image, output_path: Path, skill: Skill, params: dict[str, Any]) -> None:
        ext = output_path.suffix.lower()
        try:
            if ext in JPEG_EXTENSIONS:
                quality = int(min(max(read_float(params, "quality", 90), 40), 100))
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                img.save(output_path, format="JPEG", quality=quality)
            elif ext == ".png":
                img.save(output_path, format="PNG", optimize=self.handler_name(skill) == "compress")
            else:
                img.save(output_path)
        except (OSError, ValueError) as exc:
            raise DriverError(f"cannot write image {output_path}: {exc}") from exc
        logger.debug("Image skill '%s' wrote %s", skill.id, output_path)
