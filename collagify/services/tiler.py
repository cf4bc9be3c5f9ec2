# collagify/services/tiler.py
from io import BytesIO
from typing import List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from collagify.errors import DecodeError, EncodeError

BACKGROUND = (255, 255, 255)
JPEG_QUALITY = 100


def _decode(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"decode image: {e}") from e
    return img.convert("RGB")


def _encode(img: Image.Image) -> bytes:
    buffer = BytesIO()
    try:
        img.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (OSError, ValueError) as e:
        raise EncodeError(f"encode image: {e}") from e
    return buffer.getvalue()


def _grid(images: List[Image.Image], rows: int, cols: int) -> Image.Image:
    # All images are assumed to share the first image's size; others are clipped to the cell.
    cell_width, cell_height = images[0].size
    canvas = Image.new("RGB", (cols * cell_width, rows * cell_height), BACKGROUND)

    for idx, img in enumerate(images):
        if img.size != (cell_width, cell_height):
            img = img.crop((0, 0, min(img.width, cell_width), min(img.height, cell_height)))
        x_offset = (idx % cols) * cell_width
        y_offset = (idx // cols) * cell_height
        canvas.paste(img, (x_offset, y_offset))

    return canvas


def concat(images: Sequence[bytes], rows: int, cols: int) -> Optional[bytes]:
    """
    Tile encoded images into a rows x cols grid, filled row by row.

    Args:
        images: Raw image payloads in any format Pillow can read
        rows: Number of grid rows
        cols: Number of grid columns

    Returns:
        The collage as JPEG bytes, or None when `images` is empty
    """
    if not images:
        return None
    if rows * cols < len(images):
        raise ValueError(f"{rows}x{cols} grid cannot hold {len(images)} images")

    decoded = [_decode(data) for data in images]
    return _encode(_grid(decoded, rows, cols))
