"""Scalar per-pixel pipeline: pixel -> complex point -> escape count -> colour.

These functions are the single-threaded reference for the vectorised kernels
in :mod:`mandelzoom.renderer` and are kept free of side effects.
"""

from __future__ import annotations

from .renderer import ESCAPE_RADIUS_SQ, SATURATION, ComplexPoint, RenderConfig


def map_pixel(px: int, py: int, zoom: float, center: ComplexPoint, config: RenderConfig) -> ComplexPoint:
    """Map a pixel of the output grid onto the complex plane."""

    span_real = 4.0 / zoom
    span_imag = 2.0 / zoom
    real = span_real / config.img_width * px - span_real / 2 + center.real
    imag = span_imag / config.img_height * py - span_imag / 2 + center.imag
    return ComplexPoint(real, imag)


def complex_to_pixel(point: ComplexPoint, zoom: float, center: ComplexPoint, config: RenderConfig) -> tuple[float, float]:
    """Inverse of :func:`map_pixel`; returns fractional pixel coordinates."""

    span_real = 4.0 / zoom
    span_imag = 2.0 / zoom
    px = (point.real - center.real + span_real / 2) * config.img_width / span_real
    py = (point.imag - center.imag + span_imag / 2) * config.img_height / span_imag
    return px, py


def iterate(c: ComplexPoint, max_iter: int) -> int:
    """Count escape-time iterations of ``z <- z**2 + c`` starting from ``z = c``."""

    zr, zi = c.real, c.imag
    count = 0
    while count < max_iter and zr * zr + zi * zi < ESCAPE_RADIUS_SQ:
        zr, zi = zr * zr - zi * zi + c.real, 2.0 * zr * zi + c.imag
        count += 1
    return count


def derive_hsv(count: int, max_iter: int) -> tuple[int, int, float]:
    hue = count % 360
    value = (max_iter - count) / max_iter * 100
    return hue, SATURATION, value


def hsv_to_rgb(hue: float, saturation: float, value: float) -> tuple[int, int, int]:
    """Convert HSV to 8-bit RGB.

    The 60-120 and 120-180 degree sectors share a single ``(X, C, X)`` branch;
    this is the palette the zoom sequences have always been rendered with.
    """

    chroma = (saturation / 100) * (value / 100)
    x = chroma * (1 - abs((hue / 60) % 2 - 1))
    m = value / 100 - chroma

    if hue < 60:
        sector = (chroma, x, 0.0)
    elif hue < 180:
        sector = (x, chroma, x)
    elif hue < 240:
        sector = (0.0, x, chroma)
    elif hue < 300:
        sector = (x, 0.0, chroma)
    else:
        sector = (chroma, 0.0, x)

    r, g, b = (_to_channel(s, m) for s in sector)
    return r, g, b


def _to_channel(sector_value: float, m: float) -> int:
    channel = int((sector_value + m) * 255)
    return max(0, min(channel, 255))


def colorize(count: int, max_iter: int) -> tuple[int, int, int]:
    return hsv_to_rgb(*derive_hsv(count, max_iter))


def shade_pixel(px: int, py: int, zoom: float, center: ComplexPoint, config: RenderConfig) -> tuple[int, int, int]:
    """Run the whole per-pixel pipeline for one pixel."""

    c = map_pixel(px, py, zoom, center, config)
    return colorize(iterate(c, config.max_iter), config.max_iter)
