import numpy as np
import pytest

from mandelzoom import (
    ComplexPoint,
    EncodeFailure,
    FrameOrchestrator,
    RenderConfig,
    allocate_buffer,
    estimate_frame_count,
    report_progress,
    zoom_levels,
)


def _config(zoom_start=1.0, zoom_end=10.0, zoom_fact=2.0):
    return RenderConfig(
        max_iter=30,
        img_width=6,
        img_height=4,
        center=ComplexPoint(-0.75, 0.1),
        zoom_start=zoom_start,
        zoom_end=zoom_end,
        zoom_fact=zoom_fact,
    )


class RecordingEncoder:
    def __init__(self, fail_on=None):
        self.frames = []
        self.fail_on = fail_on

    def __call__(self, frame):
        if frame.id == self.fail_on:
            raise EncodeFailure(f"rejected frame {frame.id}")
        self.frames.append((frame.id, frame.zoom, frame.pixels.copy()))
        return f"{frame.id:05d}.jpg"


def test_zoom_levels_loop_is_authoritative_over_estimate():
    config = _config()
    assert list(zoom_levels(config)) == [1.0, 2.0, 4.0, 8.0]
    # log(10) / log(2) = 3.32, so the progress estimate is one short
    assert estimate_frame_count(config) == 3


def test_zoom_levels_include_exact_end():
    assert list(zoom_levels(_config(zoom_end=8.0))) == [1.0, 2.0, 4.0, 8.0]


def test_zoom_levels_single_frame():
    assert list(zoom_levels(_config(zoom_start=3.0, zoom_end=3.0))) == [3.0]
    assert estimate_frame_count(_config(zoom_start=3.0, zoom_end=3.0)) == 0


def test_zoom_levels_are_geometric_and_increasing():
    config = _config(zoom_start=0.5, zoom_end=1e4, zoom_fact=1.3)
    levels = list(zoom_levels(config))
    assert all(b > a for a, b in zip(levels, levels[1:]))
    for i, zoom in enumerate(levels):
        assert zoom == pytest.approx(0.5 * 1.3 ** i)
    assert levels[-1] <= 1e4 < levels[-1] * 1.3


def test_report_progress_prints_frame_line(capsys):
    report_progress(2, 9)
    assert capsys.readouterr().out == "frame 2 out of 9\r"


def _expected_pixels(config, scheduler, zoom):
    buffer = allocate_buffer(config)
    scheduler.dispatch(buffer, config, config.center, zoom)
    return buffer


def test_orchestrator_renders_every_zoom_level(scheduler):
    config = _config()
    encoder = RecordingEncoder()
    progress = []
    orchestrator = FrameOrchestrator(config, scheduler, encoder, progress=lambda i, n: progress.append((i, n)))

    results = orchestrator.run()

    assert results == ["00000.jpg", "00001.jpg", "00002.jpg", "00003.jpg"]
    assert [frame_id for frame_id, _, _ in encoder.frames] == [0, 1, 2, 3]
    assert [zoom for _, zoom, _ in encoder.frames] == [1.0, 2.0, 4.0, 8.0]
    assert progress == [(0, 3), (1, 3), (2, 3), (3, 3)]
    for _, zoom, pixels in encoder.frames:
        assert pixels.tobytes() == _expected_pixels(config, scheduler, zoom).tobytes()


def test_orchestrator_frames_differ_between_zoom_levels(scheduler):
    encoder = RecordingEncoder()
    FrameOrchestrator(_config(), scheduler, encoder, progress=None).run()
    first, second = encoder.frames[0][2], encoder.frames[1][2]
    assert not np.array_equal(first, second)


def test_pipelined_run_matches_sequential(scheduler):
    config = _config(zoom_end=40.0)
    sequential = RecordingEncoder()
    pipelined = RecordingEncoder()

    FrameOrchestrator(config, scheduler, sequential, progress=None).run()
    results = FrameOrchestrator(config, scheduler, pipelined, pipelined=True, progress=None).run()

    assert results == [f"{i:05d}.jpg" for i in range(6)]
    assert len(pipelined.frames) == len(sequential.frames) == 6
    for (id_a, zoom_a, pixels_a), (id_b, zoom_b, pixels_b) in zip(sequential.frames, pipelined.frames):
        assert (id_a, zoom_a) == (id_b, zoom_b)
        assert pixels_a.tobytes() == pixels_b.tobytes()


def test_encode_failure_aborts_run(scheduler):
    encoder = RecordingEncoder(fail_on=1)
    with pytest.raises(EncodeFailure):
        FrameOrchestrator(_config(), scheduler, encoder, progress=None).run()
    assert [frame_id for frame_id, _, _ in encoder.frames] == [0]


def test_encode_failure_aborts_pipelined_run(scheduler):
    encoder = RecordingEncoder(fail_on=2)
    with pytest.raises(EncodeFailure):
        FrameOrchestrator(_config(zoom_end=100.0), scheduler, encoder, pipelined=True, progress=None).run()
    assert 2 not in [frame_id for frame_id, _, _ in encoder.frames]
