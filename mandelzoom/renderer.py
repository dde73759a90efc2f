"""Rendering primitives for Mandelbrot zoom frames."""

from __future__ import annotations

import math
import os
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

from .errors import ComputeUnavailable, ResourceExhaustion

ESCAPE_RADIUS_SQ = 4.0
CHANNELS = 3
DEFAULT_DEVICE = "/CPU:0"
SATURATION = 100


@dataclass(frozen=True)
class ComplexPoint:
    real: float
    imag: float


@dataclass(frozen=True)
class RenderConfig:
    """Parameters shared by every frame of a zoom sequence."""

    max_iter: int
    img_width: int
    img_height: int
    center: ComplexPoint
    zoom_start: float
    zoom_end: float
    zoom_fact: float

    def __post_init__(self) -> None:
        if self.max_iter <= 0:
            raise ValueError("max_iter must be positive.")
        if self.img_width <= 0 or self.img_height <= 0:
            raise ValueError("image dimensions must be positive.")
        if self.zoom_start <= 0:
            raise ValueError("zoom_start must be positive.")
        if self.zoom_end < self.zoom_start:
            raise ValueError("zoom_end must not be smaller than zoom_start.")
        if self.zoom_fact <= 1:
            raise ValueError("zoom_fact must be greater than 1.")

    @property
    def pixel_count(self) -> int:
        return self.img_width * self.img_height

    @property
    def buffer_size(self) -> int:
        return self.pixel_count * CHANNELS


@dataclass(frozen=True)
class Frame:
    """A rendered zoom level: row-major interleaved RGB8 pixels."""

    id: int
    zoom: float
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.id < 0:
            raise ValueError("frame id must be non-negative.")
        if self.pixels.dtype != np.uint8 or self.pixels.shape != (self.width * self.height * CHANNELS,):
            raise ValueError(
                f"frame buffer must hold {self.width * self.height * CHANNELS} bytes, got shape {self.pixels.shape}."
            )

    def as_image_array(self) -> np.ndarray:
        return self.pixels.reshape(self.height, self.width, CHANNELS)


def allocate_buffer(config: RenderConfig) -> np.ndarray:
    try:
        return np.zeros(config.buffer_size, dtype=np.uint8)
    except MemoryError as exc:
        raise ResourceExhaustion(f"could not allocate a {config.buffer_size} byte frame buffer") from exc


def require_device(device: str) -> None:
    """Fail early when ``device`` is not one of TensorFlow's logical devices."""

    try:
        wanted = tf.DeviceSpec.from_string(device)
    except ValueError as exc:
        raise ComputeUnavailable(f"malformed compute device {device!r}: {exc}") from exc
    wanted_type = (wanted.device_type or "").upper()
    wanted_index = wanted.device_index or 0
    for logical in tf.config.list_logical_devices():
        candidate = tf.DeviceSpec.from_string(logical.name)
        if (candidate.device_type or "").upper() == wanted_type and (candidate.device_index or 0) == wanted_index:
            return
    raise ComputeUnavailable(f"compute device {device!r} is not available")


def _pixel_coordinates(start: int, stop: int, config: RenderConfig, center: ComplexPoint, zoom: float) -> tuple[tf.Tensor, tf.Tensor]:
    """Complex coordinates of the flat pixel indices ``[start, stop)``."""

    width = config.img_width
    indices = tf.range(start, stop, dtype=tf.int64)
    px = tf.cast(indices % width, tf.float64)
    py = tf.cast(indices // width, tf.float64)

    span_real = 4.0 / zoom
    span_imag = 2.0 / zoom
    real = span_real / width * px - span_real / 2 + center.real
    imag = span_imag / config.img_height * py - span_imag / 2 + center.imag
    return real, imag


@tf.function(input_signature=[
    tf.TensorSpec([None], tf.float64),
    tf.TensorSpec([None], tf.float64),
    tf.TensorSpec([], tf.int32),
])
def _escape_counts(c_real: tf.Tensor, c_imag: tf.Tensor, max_iter: tf.Tensor) -> tf.Tensor:
    """Iterate every point until it leaves the escape radius or hits ``max_iter``."""

    i = tf.constant(0, dtype=tf.int32)
    counts = tf.zeros_like(c_real, tf.int32)
    active = c_real * c_real + c_imag * c_imag < ESCAPE_RADIUS_SQ

    def cond(i, zr, zi, counts, active):
        return tf.logical_and(tf.less(i, max_iter), tf.reduce_any(active))

    def body(i, zr, zi, counts, active):
        zr_new = zr * zr - zi * zi + c_real
        zi_new = 2.0 * zr * zi + c_imag
        zr = tf.where(active, zr_new, zr)
        zi = tf.where(active, zi_new, zi)
        counts = counts + tf.cast(active, tf.int32)
        active = tf.logical_and(active, zr * zr + zi * zi < ESCAPE_RADIUS_SQ)
        return i + 1, zr, zi, counts, active

    _, _, _, counts, _ = tf.while_loop(cond, body, (i, c_real, c_imag, counts, active))
    return counts


def _counts_to_rgb(counts: tf.Tensor, max_iter: int) -> tf.Tensor:
    """Vectorised counterpart of :func:`mandelzoom.pixel.colorize`."""

    n = tf.cast(counts, tf.float64)
    hue = tf.math.floormod(n, 360.0)
    value = (max_iter - n) / max_iter * 100

    chroma = (SATURATION / 100) * (value / 100)
    x = chroma * (1 - tf.abs(tf.math.floormod(hue / 60, 2.0) - 1))
    m = value / 100 - chroma
    zero = tf.zeros_like(x)

    # 60-180 is one sector on purpose, see pixel.hsv_to_rgb
    r, g, b = chroma, zero, x
    for bound, (sr, sg, sb) in (
        (300.0, (x, zero, chroma)),
        (240.0, (zero, x, chroma)),
        (180.0, (x, chroma, x)),
        (60.0, (chroma, x, zero)),
    ):
        in_sector = hue < bound
        r = tf.where(in_sector, sr, r)
        g = tf.where(in_sector, sg, g)
        b = tf.where(in_sector, sb, b)

    channels = tf.stack([r, g, b], axis=-1) + tf.expand_dims(m, -1)
    channels = tf.cast(channels * 255, tf.int32)
    return tf.cast(tf.clip_by_value(channels, 0, 255), tf.uint8)


def render_range(start: int, stop: int, config: RenderConfig, center: ComplexPoint, zoom: float) -> tf.Tensor:
    """Colour the flat pixel indices ``[start, stop)``; returns a ``(stop - start, 3)`` uint8 tensor."""

    real, imag = _pixel_coordinates(start, stop, config, center, zoom)
    counts = _escape_counts(real, imag, tf.constant(config.max_iter, dtype=tf.int32))
    return _counts_to_rgb(counts, config.max_iter)


class DispatchScheduler:
    """Fan the pixels of one frame out over a pool of worker threads.

    Each worker owns one contiguous slice of the flat pixel range and writes
    only the matching bytes of the shared buffer. :meth:`dispatch` returns
    after every worker has finished, so the buffer is safe to read from then.
    """

    def __init__(self, workers: Optional[int] = None, device: Optional[str] = None) -> None:
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError("workers must be at least 1.")
        self.workers = workers
        self.device = device if device is not None else DEFAULT_DEVICE
        require_device(self.device)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mandelzoom-dispatch")

    def __enter__(self) -> "DispatchScheduler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def partition(self, total: int) -> list[tuple[int, int]]:
        chunk = max(1, math.ceil(total / self.workers))
        return [(start, min(start + chunk, total)) for start in range(0, total, chunk)]

    def dispatch(self, buffer: np.ndarray, config: RenderConfig, center: ComplexPoint, zoom: float) -> None:
        if buffer.dtype != np.uint8 or buffer.shape != (config.buffer_size,):
            raise ValueError(f"buffer must be a flat uint8 array of {config.buffer_size} bytes.")

        futures = [
            self._executor.submit(self._render_slice, buffer, config, center, zoom, start, stop)
            for start, stop in self.partition(config.pixel_count)
        ]
        wait(futures)
        for future in futures:
            future.result()

    def _render_slice(self, buffer, config, center, zoom, start, stop) -> None:
        try:
            with tf.device(self.device):
                rgb = render_range(start, stop, config, center, zoom)
        except tf.errors.ResourceExhaustedError as exc:
            raise ResourceExhaustion(f"device {self.device} ran out of memory rendering pixels {start}-{stop}") from exc
        except tf.errors.OpError as exc:
            raise ComputeUnavailable(f"device {self.device} failed rendering pixels {start}-{stop}: {exc.message}") from exc
        buffer[CHANNELS * start:CHANNELS * stop] = rgb.numpy().reshape(-1)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
