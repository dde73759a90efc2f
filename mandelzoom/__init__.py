"""Public API for rendering Mandelbrot zoom sequences."""

from .errors import ComputeUnavailable, EncodeFailure, OutputUnavailable, RenderError, ResourceExhaustion
from .generator import FrameOrchestrator, estimate_frame_count, report_progress, zoom_levels
from .output import FrameWriter, encode, ensure_directory, frame_path
from .pixel import colorize, complex_to_pixel, iterate, map_pixel, shade_pixel
from .renderer import ComplexPoint, DispatchScheduler, Frame, RenderConfig, allocate_buffer, render_range

__all__ = [
    "ComplexPoint",
    "ComputeUnavailable",
    "DispatchScheduler",
    "EncodeFailure",
    "Frame",
    "FrameOrchestrator",
    "FrameWriter",
    "OutputUnavailable",
    "RenderConfig",
    "RenderError",
    "ResourceExhaustion",
    "allocate_buffer",
    "colorize",
    "complex_to_pixel",
    "encode",
    "ensure_directory",
    "estimate_frame_count",
    "frame_path",
    "iterate",
    "map_pixel",
    "render_range",
    "report_progress",
    "shade_pixel",
    "zoom_levels",
]
