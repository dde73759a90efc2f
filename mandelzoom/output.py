"""Image encoding for rendered frames."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import PIL.Image

from .errors import EncodeFailure, OutputUnavailable
from .renderer import CHANNELS, Frame


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def ensure_directory(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputUnavailable(f"could not create frame directory {path}: {exc}") from exc
    return path


def frame_path(frame_dir: Path, frame_id: int, digits: int, image_format: str) -> Path:
    return frame_dir / f"{frame_id:0{digits}d}.{image_format}"


def encode(
    path: Path,
    width: int,
    height: int,
    channel_count: int,
    buffer: np.ndarray,
    quality: int,
) -> None:
    """Write a row-major interleaved RGB8 ``buffer`` to ``path``.

    The format is taken from the file extension. Raises :class:`EncodeFailure`
    if Pillow rejects the buffer or cannot write the file.
    """

    if channel_count != CHANNELS:
        raise EncodeFailure(f"only {CHANNELS}-channel RGB buffers can be encoded, got {channel_count}")
    if buffer.size != width * height * channel_count:
        raise EncodeFailure(f"buffer holds {buffer.size} bytes, expected {width * height * channel_count}")

    pil_format = _pil_format_name(path.suffix.lstrip("."))
    try:
        image = PIL.Image.frombuffer("RGB", (width, height), np.ascontiguousarray(buffer, dtype=np.uint8), "raw", "RGB", 0, 1)
        image.save(str(path), format=pil_format, quality=quality)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeFailure(f"could not write {path}: {exc}") from exc


class FrameWriter:
    """Persist frames as a numbered image sequence inside ``frame_dir``."""

    def __init__(self, frame_dir: Path, *, image_format: str = "jpg", quality: int = 95, digits: int = 5) -> None:
        self.frame_dir = ensure_directory(Path(frame_dir).expanduser())
        self.image_format = image_format.lower().lstrip(".") or "jpg"
        self.quality = quality
        self.digits = digits

    def __call__(self, frame: Frame) -> Path:
        path = frame_path(self.frame_dir, frame.id, self.digits, self.image_format)
        encode(path, frame.width, frame.height, CHANNELS, frame.pixels, self.quality)
        return path
