"""Preview generation for quick thumbnails in the host UI."""

import base64
import io
from pathlib import Path

from PIL import Image

DEFAULT_PREVIEW_WIDTH = 520


class PreviewGenerator:
    """Generates small PNG previews as data URLs."""

    def __init__(self, max_width: int = DEFAULT_PREVIEW_WIDTH):
        """Initialize preview generator.

        Args:
            max_width: Previews wider than this are scaled down.
        """
        self.max_width = max_width

    def image_preview(self, path: str | Path) -> str:
        """Render *path* as a ``data:image/png;base64,...`` URL.

        Raises:
            FileNotFoundError: If the input file does not exist.
            OSError: If the file is not a readable image.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        with Image.open(path) as img:
            img.load()
            if self.max_width > 0 and img.width > self.max_width:
                height = max(1, round(img.height * self.max_width / img.width))
                img = img.resize((self.max_width, height), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            img.save(buf, format="PNG")

        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
