"""Utilities for driving a Mandelbrot zoom sequence."""

from __future__ import annotations

import math
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterator, Optional

from .renderer import DispatchScheduler, Frame, RenderConfig, allocate_buffer

Encoder = Callable[[Frame], Any]


def estimate_frame_count(config: RenderConfig) -> int:
    """Frame count used for progress display.

    Computed from the zoom ratio, so it can be one short of the number of
    frames :func:`zoom_levels` actually yields: 1 -> 10 by 2 estimates 3
    while the sequence 1, 2, 4, 8 has four frames.
    """

    return math.floor(math.log(config.zoom_end / config.zoom_start) / math.log(config.zoom_fact))


def zoom_levels(config: RenderConfig) -> Iterator[float]:
    zoom = config.zoom_start
    while zoom <= config.zoom_end:
        yield zoom
        zoom *= config.zoom_fact


def report_progress(frame_id: int, frame_count: int) -> None:
    print("frame {0} out of {1}".format(frame_id, frame_count), end='\r')


class FrameOrchestrator:
    """Render every zoom level of ``config`` and hand each frame to ``encoder``.

    With ``pipelined`` set, two buffers alternate and encoding runs on a
    background thread, so frame N is written while frame N + 1 is computed.
    A buffer is never redispatched before its previous encode has finished.
    """

    def __init__(
        self,
        config: RenderConfig,
        scheduler: DispatchScheduler,
        encoder: Encoder,
        *,
        pipelined: bool = False,
        progress: Optional[Callable[[int, int], None]] = report_progress,
    ) -> None:
        self.config = config
        self.scheduler = scheduler
        self.encoder = encoder
        self.pipelined = pipelined
        self.progress = progress

    def _frame(self, frame_id: int, zoom: float, buffer) -> Frame:
        return Frame(
            id=frame_id,
            zoom=zoom,
            width=self.config.img_width,
            height=self.config.img_height,
            pixels=buffer,
        )

    def run(self) -> list[Any]:
        frame_count = estimate_frame_count(self.config)
        if self.pipelined:
            return self._run_pipelined(frame_count)

        results = []
        buffer = allocate_buffer(self.config)
        for frame_id, zoom in enumerate(zoom_levels(self.config)):
            if self.progress is not None:
                self.progress(frame_id, frame_count)
            self.scheduler.dispatch(buffer, self.config, self.config.center, zoom)
            results.append(self.encoder(self._frame(frame_id, zoom, buffer)))
        return results

    def _run_pipelined(self, frame_count: int) -> list[Any]:
        buffers = [allocate_buffer(self.config), allocate_buffer(self.config)]
        pending: list[Optional[Future]] = [None, None]
        submitted: list[Future] = []

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="mandelzoom-encode") as encode_pool:
            try:
                for frame_id, zoom in enumerate(zoom_levels(self.config)):
                    slot = frame_id % 2
                    if pending[slot] is not None:
                        pending[slot].result()
                    if self.progress is not None:
                        self.progress(frame_id, frame_count)
                    self.scheduler.dispatch(buffers[slot], self.config, self.config.center, zoom)
                    future = encode_pool.submit(self.encoder, self._frame(frame_id, zoom, buffers[slot]))
                    pending[slot] = future
                    submitted.append(future)
            except BaseException:
                for future in submitted:
                    future.cancel()
                raise
            return [future.result() for future in submitted]
